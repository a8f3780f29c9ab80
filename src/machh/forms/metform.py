# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""MetForm provider.

Callback arguments: ``(form_id, form_data, form_settings, attributes)``

- ``form_data`` maps field keys (``mf-email``, ``mf-first-name``...) to values
- ``attributes["email_field_name"]`` (string or list) names the email field;
  those fields are treated as declared ``email`` type
- the form name is looked up from ``form_id`` through ``title_lookup``

Raw keys drop the ``mf-`` prefix.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from typing import Any

from .base import FieldRules, FormProvider, FormSubmission, SubmittedField, as_mapping

logger = logging.getLogger(__name__)

_MF_PREFIX_RE = re.compile(r"^mf-")

METFORM_RULES = FieldRules(
    candidates={
        "email": ("email", "e-mail", "mail", "courriel", "mf-email"),
        "name": ("name", "nom", "full-name", "fullname", "your-name", "mf-name", "mf-first-name", "mf-last-name"),
        "phone": ("phone", "tel", "telephone", "mobile", "cell", "mf-phone", "mf-mobile"),
        "message": ("message", "msg", "comment", "comments", "your-message", "mf-textarea", "mf-message"),
    },
    type_map={"email": ("email",)},
    excluded_keys=frozenset(
        {
            "id",
            "form_nonce",
            "action",
            "g-recaptcha-response",
            "g-recaptcha-response-v3",
            "mf-captcha-challenge",
            "hidden-fields",
            "mf-hcaptcha-response",
            "mf-turnstile-response",
        }
    ),
    excluded_prefixes=("mf-recaptcha", "mf-hcaptcha", "mf-turnstile", "mf-captcha"),
)


def _email_keys(attributes: Any) -> frozenset[str]:
    if not isinstance(attributes, Mapping):
        return frozenset()
    raw = attributes.get("email_field_name")
    if not raw:
        return frozenset()
    if isinstance(raw, str):
        return frozenset({raw})
    if isinstance(raw, (list, tuple)):
        return frozenset(str(k) for k in raw if k)
    return frozenset()


class MetFormProvider(FormProvider):
    source = "metform"
    rules = METFORM_RULES

    def __init__(self, *args: Any, title_lookup: Callable[[Any], str] | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.title_lookup = title_lookup

    def _form_name(self, form_id: Any, form_settings: Any) -> str:
        if self.title_lookup is not None:
            try:
                return str(self.title_lookup(form_id) or "")
            except LookupError:
                logger.debug("MetForm: no title for form %r", form_id)
        if isinstance(form_settings, Mapping):
            return str(form_settings.get("form_title") or "")
        return ""

    def extract(
        self,
        form_id: Any = None,
        form_data: Any = None,
        form_settings: Any = None,
        attributes: Any = None,
        *_: Any,
    ) -> FormSubmission | None:
        data = as_mapping(form_data)
        if data is None:
            logger.warning("MetForm: No form data available")
            return None

        email_keys = _email_keys(attributes)
        fields = tuple(
            SubmittedField(
                key=str(key),
                value=value,
                type="email" if key in email_keys else "",
                raw_key=_MF_PREFIX_RE.sub("", str(key)),
            )
            for key, value in data.items()
        )
        try:
            numeric_id = int(form_id)
        except (TypeError, ValueError):
            numeric_id = 0
        return FormSubmission(
            source=self.source,
            form_id=numeric_id,
            form_name=self._form_name(form_id, form_settings),
            fields=fields,
        )
