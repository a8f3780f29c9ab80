# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""UTM and ad-click parameter extraction.

Pageviews and clicks read parameters from the URL being reported. Form
submissions read the first-touch ``machh_utm`` cookie instead, since the
form may be sent long after the visitor landed.

Both return None when no whitelisted parameter has a value, never ``{}``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from urllib.parse import parse_qs, unquote, urlsplit

from .sanitizer import sanitize_text_field

logger = logging.getLogger(__name__)

UTM_PARAMS: tuple[str, ...] = (
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    # ad click ids
    "gclid",
    "fbclid",
    "msclkid",
    "ttclid",
    "wbraid",
    "dclid",
    "twclid",
    "li_fat_id",
)


def _pick(params: Mapping[str, object]) -> dict[str, str] | None:
    result: dict[str, str] = {}
    for name in UTM_PARAMS:
        value = params.get(name)
        if isinstance(value, list):
            value = value[0] if value else ""
        if value is None:
            continue
        cleaned = sanitize_text_field(value)
        if cleaned:
            result[name] = cleaned
    return result or None


def extract_utm(url: str) -> dict[str, str] | None:
    """Whitelisted parameters from *url*'s query string.

    ``https://site/x?utm_source=fb&other=1`` → ``{"utm_source": "fb"}``.
    """
    if not url:
        return None
    try:
        query = urlsplit(url).query
    except ValueError:
        return None
    if not query:
        return None
    return _pick(parse_qs(query, keep_blank_values=False))


def parse_utm_cookie(raw: str | None) -> dict[str, str] | None:
    """Decode the first-touch JSON cookie. Malformed cookies yield None."""
    if not raw:
        return None
    # The cookie is usually URL-encoded JSON; accept both forms.
    for candidate in (raw, unquote(raw)):
        try:
            data = json.loads(candidate)
            break
        except ValueError:
            continue
    else:
        logger.debug("Ignoring malformed UTM cookie")
        return None
    if not isinstance(data, dict):
        return None
    return _pick(data)
