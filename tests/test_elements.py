# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for machh.elements — lxml adapter, trackability, labels."""

from __future__ import annotations

import pytest

from machh.elements import (
    HtmlElement,
    TrackableElement,
    element_label,
    element_target,
    find_trackable,
    is_trackable,
    iter_descendants,
    parse_document,
    parse_fragment,
)


class TestHtmlElement:
    def test_satisfies_protocol(self):
        assert isinstance(parse_fragment("<a>x</a>"), TrackableElement)

    def test_tag_lowercase(self):
        assert parse_fragment("<BUTTON>x</BUTTON>").tag == "button"

    def test_valueless_attribute_present(self):
        el = parse_fragment("<a data-machh-ignore>x</a>")
        assert el.get("data-machh-ignore") == ""
        assert el.get("data-other") is None

    def test_parent_chain_ends_at_root(self):
        root = parse_document("<html><body><a href='#'>x</a></body></html>")
        link = next(e for e in iter_descendants(root) if e.tag == "a")
        assert link.parent.tag == "body"
        assert link.parent.parent.tag == "html"
        assert link.parent.parent.parent is None

    def test_equality_by_identity(self):
        root = parse_fragment("<div><a>x</a></div>")
        a1 = HtmlElement(root.raw[0])
        a2 = HtmlElement(root.raw[0])
        assert a1 == a2
        assert len({a1, a2}) == 1


class TestTrackable:
    @pytest.mark.parametrize(
        "markup,expected",
        [
            ("<a href='/'>x</a>", True),
            ("<button>x</button>", True),
            ("<input type='submit' value='Go'>", True),
            ("<input type='BUTTON' value='Go'>", True),
            ("<input type='text'>", False),
            ("<div role='button'>x</div>", True),
            ("<li role='menuitem'>x</li>", True),
            ("<div role='tab'>x</div>", True),
            ("<div role='dialog'>x</div>", False),
            ("<span data-machh-track>x</span>", True),
            ("<div>x</div>", False),
        ],
    )
    def test_is_trackable(self, markup, expected):
        assert is_trackable(parse_fragment(markup)) is expected

    def test_find_trackable_starts_at_target(self):
        el = parse_fragment("<button>x</button>")
        assert find_trackable(el) == el


class TestTargetAndLabel:
    def test_href_trimmed(self):
        assert element_target(parse_fragment("<a href='  tel:1 '>x</a>")) == "tel:1"

    def test_button_without_href(self):
        assert element_target(parse_fragment("<button>x</button>")) == ""

    def test_formaction(self):
        assert element_target(parse_fragment("<button formaction='/devis'>x</button>")) == "/devis"

    def test_blank_explicit_label_ignored(self):
        el = parse_fragment("<a data-machh-label='  ' aria-label='Aria'>Text</a>")
        assert element_label(el) == "Aria"
