# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""DOM element model for click classification.

The classifier never touches a concrete DOM API. It reads elements through
the :class:`TrackableElement` protocol; :class:`HtmlElement` adapts
``lxml.html`` elements, which is what the CLI and the tests feed it.

Tracking markers (data attributes set by site owners):

- ``data-machh-ignore`` — never track this element (absolute veto)
- ``data-machh-track`` — always track, bypassing heuristics
- ``data-machh-type`` — explicit click type for opted-in elements
- ``data-machh-label`` — label override
"""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable

from lxml import html as lxml_html

IGNORE_ATTR = "data-machh-ignore"
TRACK_ATTR = "data-machh-track"
TYPE_ATTR = "data-machh-type"
LABEL_ATTR = "data-machh-label"

MAX_LABEL_LEN = 100
MAX_ANCESTOR_DEPTH = 10

# Roles that make an arbitrary element clickable in the conversion sense.
TRACKABLE_ROLES = frozenset({"button", "link", "menuitem", "tab"})
TRACKABLE_TAGS = frozenset({"a", "button"})
TRACKABLE_INPUT_TYPES = frozenset({"submit", "button"})

_WS_RE = re.compile(r"\s+")


@runtime_checkable
class TrackableElement(Protocol):
    """Minimal read-only view of a DOM element."""

    @property
    def tag(self) -> str: ...

    def get(self, attr: str) -> str | None: ...

    @property
    def text(self) -> str: ...

    @property
    def parent(self) -> TrackableElement | None: ...


class HtmlElement:
    """``TrackableElement`` over an ``lxml.html`` element."""

    __slots__ = ("_el",)

    def __init__(self, el: lxml_html.HtmlElement) -> None:
        self._el = el

    @property
    def tag(self) -> str:
        tag = self._el.tag
        # Comments and processing instructions have a callable tag.
        return tag.lower() if isinstance(tag, str) else ""

    def get(self, attr: str) -> str | None:
        value = self._el.get(attr)
        # Valueless attributes (<a data-machh-ignore>) are present but empty
        if value is None and attr in self._el.attrib:
            return ""
        return value

    @property
    def text(self) -> str:
        return self._el.text_content() or ""

    @property
    def parent(self) -> HtmlElement | None:
        parent = self._el.getparent()
        return HtmlElement(parent) if parent is not None else None

    @property
    def raw(self) -> lxml_html.HtmlElement:
        return self._el

    def __eq__(self, other: object) -> bool:
        return isinstance(other, HtmlElement) and other._el is self._el

    def __hash__(self) -> int:
        return id(self._el)

    def __repr__(self) -> str:
        return f"HtmlElement(<{self.tag}>)"


def parse_fragment(markup: str) -> HtmlElement:
    """Parse a single-root HTML fragment into an :class:`HtmlElement`."""
    return HtmlElement(lxml_html.fragment_fromstring(markup, create_parent=False))


def parse_document(markup: str | bytes) -> HtmlElement:
    """Parse a full HTML document; returns the ``<html>`` root."""
    return HtmlElement(lxml_html.document_fromstring(markup))


def iter_descendants(root: HtmlElement):
    """Yield every element under *root* (document order, root included)."""
    for el in root.raw.iter():
        if isinstance(el.tag, str):
            yield HtmlElement(el)


def has_marker(element: TrackableElement, attr: str) -> bool:
    return element.get(attr) is not None


def is_trackable(element: TrackableElement) -> bool:
    """Link, button, submit/button input, clickable role, or explicit opt-in."""
    if has_marker(element, TRACK_ATTR):
        return True
    tag = element.tag
    if tag in TRACKABLE_TAGS:
        return True
    if tag == "input" and (element.get("type") or "").strip().lower() in TRACKABLE_INPUT_TYPES:
        return True
    role = (element.get("role") or "").strip().lower()
    return role in TRACKABLE_ROLES


def find_trackable(target: TrackableElement | None) -> TrackableElement | None:
    """Nearest trackable element from *target* upward.

    Looks at *target* and at most ``MAX_ANCESTOR_DEPTH - 1`` ancestors,
    stopping early at the document root.
    """
    node = target
    depth = 0
    while node is not None and depth < MAX_ANCESTOR_DEPTH:
        if is_trackable(node):
            return node
        node = node.parent
        depth += 1
    return None


def element_target(element: TrackableElement) -> str:
    """href for links, formaction/empty for buttons."""
    href = element.get("href")
    if href is not None:
        return href.strip()
    return (element.get("formaction") or "").strip()


def element_label(element: TrackableElement) -> str:
    """data-machh-label > aria-label > visible text (inputs: value).

    Whitespace collapsed, truncated to 100 chars.
    """
    for attr in (LABEL_ATTR, "aria-label"):
        value = element.get(attr)
        if value and value.strip():
            return collapse_label(value)
    text = element.text
    if not text.strip() and element.tag == "input":
        text = element.get("value") or ""
    return collapse_label(text)


def collapse_label(text: str) -> str:
    return _WS_RE.sub(" ", text or "").strip()[:MAX_LABEL_LEN]
