# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Elementor Pro forms provider.

Callback argument: ``(record)`` where ``record["fields"]`` maps field ids to
``{"type", "title", "value"}`` and ``record["form_settings"]`` carries
``form_name`` and ``id``. Records may also be objects with a ``get(name)``
accessor, as the plugin hands them over.

Typed fields (``email``, ``tel``, ``textarea``) win over id/title matching.
Raw keys are the slugged field title, else the field id.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..sanitizer import slugify
from .base import FieldRules, FormProvider, FormSubmission, SubmittedField, as_mapping

logger = logging.getLogger(__name__)

ELEMENTOR_RULES = FieldRules(
    candidates={
        "email": ("email", "e-mail", "mail", "courriel"),
        "name": ("name", "nom", "full-name", "fullname", "your-name", "first-name", "last-name", "prenom", "prénom"),
        "phone": ("phone", "tel", "telephone", "téléphone", "mobile", "cell"),
        "message": ("message", "msg", "comment", "comments", "your-message", "textarea"),
    },
    type_map={
        "email": ("email",),
        "phone": ("tel",),
        "message": ("textarea",),
    },
    excluded_types=frozenset({"recaptcha", "recaptcha_v3", "honeypot", "hcaptcha", "hidden", "step"}),
    exact_match=False,
)


def _record_get(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    getter = getattr(record, "get", None)
    return getter(name) if callable(getter) else None


class ElementorProvider(FormProvider):
    source = "elementor"
    rules = ELEMENTOR_RULES

    def extract(self, record: Any = None, *_: Any) -> FormSubmission | None:
        fields_data = as_mapping(_record_get(record, "fields"))
        if fields_data is None:
            logger.warning("Elementor Forms: No fields data available")
            return None

        fields: list[SubmittedField] = []
        for field_id, data in fields_data.items():
            # Fields without a declared type are not real inputs
            if not isinstance(data, Mapping) or not data.get("type"):
                continue
            title = str(data.get("title") or "")
            fields.append(
                SubmittedField(
                    key=str(field_id),
                    value=data.get("value", ""),
                    type=str(data["type"]).lower(),
                    label=title,
                    raw_key=slugify(title) or str(field_id),
                )
            )

        settings = _record_get(record, "form_settings")
        settings = settings if isinstance(settings, Mapping) else {}
        return FormSubmission(
            source=self.source,
            form_id=str(settings.get("id") or ""),
            form_name=str(settings.get("form_name") or ""),
            fields=tuple(fields),
        )
