# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Sanitization for values that end up in forwarded events.

Form fields, click labels and request headers are attacker-controlled.
Every string the relay forwards passes through one of these:

1. sanitize_text_field() — single-line values (labels, form fields, headers)
2. sanitize_url() — page and referrer URLs
3. slugify() — field titles used as raw-field keys
"""

from __future__ import annotations

import re
import unicodedata

# Unicode control characters: zero-width, bidi overrides, C0/C1 controls
_CONTROL_CHAR_RE = re.compile(
    r"[\u200B-\u200F\u202A-\u202E\u2060-\u2069\uFEFF\uFFF9-\uFFFB"
    r"\u0000-\u0008\u000B\u000C\u000E-\u001F\u007F-\u009F]"
)

_TAG_RE = re.compile(r"<[^>]*>")
_SCRIPT_STYLE_RE = re.compile(r"<(script|style)[^>]*?>.*?</\1>", re.IGNORECASE | re.DOTALL)
_PERCENT_OCTET_RE = re.compile(r"%[a-fA-F0-9]{2}")
_WHITESPACE_RE = re.compile(r"\s+")
_SLUG_INVALID_RE = re.compile(r"[^a-z0-9_\-]+")
_SLUG_DASHES_RE = re.compile(r"-{2,}")


def _strip_markup(text: str) -> str:
    text = _SCRIPT_STYLE_RE.sub("", text)
    text = _TAG_RE.sub("", text)
    # A lone "<" that never closes is dropped along with what follows it.
    lt = text.find("<")
    if lt != -1 and not text[lt + 1 : lt + 2].isspace():
        text = text[:lt]
    return text


def sanitize_text_field(value: object, max_len: int | None = None) -> str:
    """Sanitize a single-line value.

    - Strips HTML tags (script/style bodies included)
    - Removes control characters and percent-encoded octets
    - Collapses all whitespace (newlines, tabs) into single spaces
    - Optionally truncates to max_len
    """
    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    if not text:
        return ""

    text = _strip_markup(text)
    text = _CONTROL_CHAR_RE.sub("", text)
    text = _PERCENT_OCTET_RE.sub("", text)
    text = _WHITESPACE_RE.sub(" ", text).strip()

    if max_len is not None and len(text) > max_len:
        text = text[:max_len]
    return text


def slugify(title: str) -> str:
    """Turn a field title into a lowercase ASCII key.

    ``"Votre Téléphone"`` → ``"votre-telephone"``.
    """
    if not title:
        return ""
    text = _strip_markup(title)
    text = unicodedata.normalize("NFKD", text)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = text.lower().strip()
    text = _WHITESPACE_RE.sub("-", text)
    text = _SLUG_INVALID_RE.sub("", text)
    text = _SLUG_DASHES_RE.sub("-", text)
    return text.strip("-")


_URL_SCHEMES = ("http", "https")


def sanitize_url(value: object) -> str:
    """Clean a page URL; anything that is not an absolute http(s) URL becomes "".

    Whitespace and control characters are removed rather than encoded,
    matching how browsers treat them in ``location.href``.
    """
    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    text = _CONTROL_CHAR_RE.sub("", text)
    text = _WHITESPACE_RE.sub("", text)
    if not text:
        return ""
    scheme, sep, rest = text.partition("://")
    if not sep or scheme.lower() not in _URL_SCHEMES or not rest:
        return ""
    if any(ch in text for ch in "<>\"`"):
        return ""
    return text
