# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for machh.sanitizer — text fields, URLs, slugs."""

from machh.sanitizer import sanitize_text_field, sanitize_url, slugify


class TestSanitizeTextField:
    def test_passthrough(self):
        assert sanitize_text_field("Jean Dupont") == "Jean Dupont"

    def test_none_and_empty(self):
        assert sanitize_text_field(None) == ""
        assert sanitize_text_field("") == ""

    def test_zero_preserved(self):
        assert sanitize_text_field("0") == "0"
        assert sanitize_text_field(0) == "0"

    def test_strips_tags(self):
        assert sanitize_text_field("<b>Hello</b> <i>there</i>") == "Hello there"

    def test_strips_script_body(self):
        assert sanitize_text_field("a<script>alert(1)</script>b") == "ab"

    def test_collapses_newlines_and_tabs(self):
        assert sanitize_text_field("line one\n\tline   two\r\n") == "line one line two"

    def test_strips_control_chars(self):
        assert sanitize_text_field("ab\u200bcd\x00") == "abcd"

    def test_strips_percent_octets(self):
        assert sanitize_text_field("a%20b%0A") == "ab"

    def test_max_len(self):
        assert sanitize_text_field("x" * 50, max_len=10) == "x" * 10

    def test_unicode_kept(self):
        assert sanitize_text_field("Téléphone : 06 12") == "Téléphone : 06 12"


class TestSanitizeUrl:
    def test_valid(self):
        assert sanitize_url("https://site.fr/x?a=1") == "https://site.fr/x?a=1"

    def test_rejects_javascript(self):
        assert sanitize_url("javascript:alert(1)") == ""

    def test_rejects_relative(self):
        assert sanitize_url("/contact") == ""

    def test_strips_whitespace(self):
        assert sanitize_url("  https://site.fr/a b ") == "https://site.fr/ab"

    def test_rejects_markup(self):
        assert sanitize_url('https://site.fr/"><script>') == ""

    def test_apostrophe_kept(self):
        assert sanitize_url("https://site.fr/l'atelier/") == "https://site.fr/l'atelier/"
        assert sanitize_url("https://site.fr/?q=d'accord") == "https://site.fr/?q=d'accord"

    def test_none(self):
        assert sanitize_url(None) == ""


class TestSlugify:
    def test_accents_and_spaces(self):
        assert slugify("Votre Téléphone") == "votre-telephone"

    def test_punctuation_dropped(self):
        assert slugify("E-mail (pro)!") == "e-mail-pro"

    def test_empty(self):
        assert slugify("") == ""
        assert slugify("!!!") == ""
