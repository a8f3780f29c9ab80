# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""WPForms provider.

Callback arguments: ``(fields, entry, form_data, entry_id)``

- ``fields`` is a list (or id-keyed mapping) of ``{"id", "type", "name",
  "value", "value_raw"}``; ``value_raw`` is preferred when non-empty
- ``form_data["id"]`` and ``form_data["settings"]["form_title"]`` identify the form

Raw keys are the slugged field name, else ``field_<id>``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..sanitizer import slugify
from .base import FieldRules, FormProvider, FormSubmission, SubmittedField, normalize_value

logger = logging.getLogger(__name__)

WPFORMS_RULES = FieldRules(
    candidates={
        "email": ("email", "e-mail", "mail", "courriel"),
        "name": ("name", "nom", "full-name", "fullname", "your-name"),
        "phone": ("phone", "tel", "telephone", "mobile", "cell"),
        "message": ("message", "msg", "comment", "comments", "your-message"),
    },
    type_map={
        "email": ("email",),
        "name": ("name",),
        "phone": ("phone",),
        "message": ("textarea",),
    },
    excluded_types=frozenset({"captcha", "hcaptcha", "turnstile", "divider", "html", "pagebreak", "hidden"}),
    exact_match=False,
)


def field_value(data: Mapping[str, Any]) -> Any:
    raw = data.get("value_raw")
    if normalize_value(raw) != "":
        return raw
    return data.get("value", "")


class WPFormsProvider(FormProvider):
    source = "wpforms"
    rules = WPFORMS_RULES

    def extract(
        self,
        fields: Any = None,
        entry: Any = None,
        form_data: Any = None,
        entry_id: Any = None,
        *_: Any,
    ) -> FormSubmission | None:
        if isinstance(fields, Mapping):
            fields = list(fields.values())
        if not fields or not isinstance(fields, (list, tuple)):
            logger.warning("WPForms: No fields data available")
            return None

        submitted: list[SubmittedField] = []
        for position, data in enumerate(fields):
            if not isinstance(data, Mapping) or "type" not in data or "name" not in data:
                continue
            name = str(data.get("name") or "")
            field_id = data.get("id", position)
            submitted.append(
                SubmittedField(
                    key=name,
                    value=field_value(data),
                    type=str(data["type"]).lower(),
                    label=name,
                    raw_key=slugify(name) or f"field_{field_id}",
                )
            )

        form_data = form_data if isinstance(form_data, Mapping) else {}
        settings = form_data.get("settings")
        settings = settings if isinstance(settings, Mapping) else {}
        try:
            form_id = int(form_data.get("id") or 0)
        except (TypeError, ValueError):
            form_id = 0
        return FormSubmission(
            source=self.source,
            form_id=form_id,
            form_name=str(settings.get("form_title") or ""),
            fields=tuple(submitted),
        )
