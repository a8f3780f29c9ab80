# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for machh.utm — URL and first-touch cookie extraction."""

from __future__ import annotations

import json
from urllib.parse import quote

from machh.utm import UTM_PARAMS, extract_utm, parse_utm_cookie


class TestExtractUtm:
    def test_single_param(self):
        assert extract_utm("https://site/x?utm_source=fb&other=1") == {"utm_source": "fb"}

    def test_no_whitelisted_params(self):
        assert extract_utm("https://site/x?other=1&ref=abc") is None

    def test_no_query(self):
        assert extract_utm("https://site/x") is None

    def test_empty_values_skipped(self):
        assert extract_utm("https://site/?utm_source=&utm_medium=cpc") == {"utm_medium": "cpc"}

    def test_only_empty_values(self):
        assert extract_utm("https://site/?utm_source=&gclid=") is None

    def test_click_ids(self):
        url = "https://site/?gclid=G1&fbclid=F1&msclkid=M1&li_fat_id=L1"
        assert extract_utm(url) == {"gclid": "G1", "fbclid": "F1", "msclkid": "M1", "li_fat_id": "L1"}

    def test_whitelist_order_and_size(self):
        assert len(UTM_PARAMS) == 13
        assert UTM_PARAMS[0] == "utm_source"

    def test_first_value_wins(self):
        assert extract_utm("https://site/?utm_source=a&utm_source=b") == {"utm_source": "a"}

    def test_values_sanitized(self):
        assert extract_utm("https://site/?utm_campaign=%3Cb%3Espring%3C/b%3E") == {"utm_campaign": "spring"}

    def test_empty_url(self):
        assert extract_utm("") is None


class TestParseUtmCookie:
    def test_json(self):
        raw = json.dumps({"utm_source": "google", "utm_medium": "cpc"})
        assert parse_utm_cookie(raw) == {"utm_source": "google", "utm_medium": "cpc"}

    def test_url_encoded_json(self):
        raw = quote(json.dumps({"gclid": "abc"}))
        assert parse_utm_cookie(raw) == {"gclid": "abc"}

    def test_unknown_keys_dropped(self):
        assert parse_utm_cookie(json.dumps({"foo": "bar"})) is None

    def test_malformed(self):
        assert parse_utm_cookie("{not json") is None

    def test_not_an_object(self):
        assert parse_utm_cookie("[1, 2]") is None

    def test_missing(self):
        assert parse_utm_cookie(None) is None
        assert parse_utm_cookie("") is None
