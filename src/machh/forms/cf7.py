# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Contact Form 7 provider.

Callback arguments: ``(contact_form, posted_data, meta=None)``

- ``contact_form`` exposes ``id`` and ``title`` (attributes, methods, or
  mapping keys)
- ``posted_data`` maps field names (``your-email``, ``your-name``...) to values
- ``meta`` may carry the submission page ``url``

CF7 fields carry no declared type, so matching is by key only.
"""

from __future__ import annotations

import logging
from typing import Any

from .base import FieldRules, FormProvider, FormSubmission, SubmittedField, as_mapping, get_attr_or_key

logger = logging.getLogger(__name__)

CF7_RULES = FieldRules(
    candidates={
        "email": ("email", "your-email", "e-mail", "mail", "user-email", "contact-email"),
        "name": ("name", "your-name", "nom", "full-name", "fullname", "user-name"),
        "phone": ("phone", "tel", "your-tel", "telephone", "your-phone", "mobile"),
        "message": ("message", "your-message", "msg", "textarea", "comment", "your-comment"),
    },
    excluded_keys=frozenset(
        {
            "_wpcf7",
            "_wpcf7_version",
            "_wpcf7_locale",
            "_wpcf7_unit_tag",
            "_wpcf7_container_post",
            "_wpcf7_posted_data_hash",
            "_wpcf7_recaptcha_response",
            "g-recaptcha-response",
            "captcha",
            "_wpnonce",
        }
    ),
    excluded_prefixes=("_wpcf7",),
)


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class CF7Provider(FormProvider):
    source = "cf7"
    rules = CF7_RULES

    def extract(
        self, contact_form: Any = None, posted_data: Any = None, meta: Any = None, *_: Any
    ) -> FormSubmission | None:
        posted = as_mapping(posted_data)
        if posted is None:
            logger.warning("CF7: No posted data available")
            return None

        fields = tuple(SubmittedField(key=str(key), value=value) for key, value in posted.items())
        meta_url = get_attr_or_key(meta, "url", "") or ""
        return FormSubmission(
            source=self.source,
            form_id=_to_int(get_attr_or_key(contact_form, "id", 0)),
            form_name=str(get_attr_or_key(contact_form, "title", "") or ""),
            fields=fields,
            meta_url=str(meta_url),
        )
