# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Property-based fuzz tests using Hypothesis.

Verifies invariants hold for arbitrary inputs across the sanitizer,
click classifier, throttle and form value normalization.
"""

from __future__ import annotations

try:
    from hypothesis import HealthCheck, given, settings
    from hypothesis import strategies as st
except ImportError:
    import pytest

    pytest.skip("hypothesis not installed", allow_module_level=True)

import re

import pytest

from machh import ClassifiedClick, ClickType
from machh.classifier import ClickClassifier
from machh.forms import normalize_value
from machh.sanitizer import sanitize_text_field, sanitize_url, slugify
from machh.throttle import ThrottleGuard
from machh.utm import extract_utm
from tests._helpers import FakeElement

# ---------------------------------------------------------------------------
# Module-level strategies
# ---------------------------------------------------------------------------

GENERAL_TEXT = st.text(min_size=0, max_size=2000)

PHONE_NUMBER = st.from_regex(r"\+?[0-9]{6,15}", fullmatch=True)

_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")

_fuzz_settings = settings(
    max_examples=200,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)


@pytest.mark.fuzz
class TestSanitizerProperties:
    @_fuzz_settings
    @given(text=GENERAL_TEXT)
    def test_single_line_no_controls(self, text):
        result = sanitize_text_field(text)
        assert not _CONTROL_RE.search(result)
        assert result == result.strip()

    @_fuzz_settings
    @given(text=GENERAL_TEXT, max_len=st.integers(1, 500))
    def test_max_len(self, text, max_len):
        assert len(sanitize_text_field(text, max_len=max_len)) <= max_len

    @_fuzz_settings
    @given(text=GENERAL_TEXT)
    def test_url_is_http_or_empty(self, text):
        result = sanitize_url(text)
        assert result == "" or result.lower().startswith(("http://", "https://"))
        assert not any(ch.isspace() for ch in result)

    @_fuzz_settings
    @given(text=GENERAL_TEXT)
    def test_slug_charset(self, text):
        slug = slugify(text)
        assert re.fullmatch(r"[a-z0-9_\-]*", slug)
        assert not slug.startswith("-") and not slug.endswith("-")


@pytest.mark.fuzz
class TestClassifierProperties:
    @_fuzz_settings
    @given(number=PHONE_NUMBER, label=GENERAL_TEXT)
    def test_tel_link_always_phone_call(self, number, label):
        element = FakeElement(tag="a", attrs={"href": f"tel:{number}"}, text=label)
        click = ClickClassifier().classify(element)
        assert click is not None
        assert click.click_type is ClickType.PHONE_CALL
        assert len(click.click_label) <= 100

    @_fuzz_settings
    @given(label=GENERAL_TEXT)
    def test_ignore_marker_is_absolute(self, label):
        element = FakeElement(
            tag="a",
            attrs={"href": "mailto:a@b.fr", "data-machh-ignore": "", "data-machh-track": ""},
            text=label,
        )
        assert ClickClassifier().classify(element) is None


@pytest.mark.fuzz
class TestThrottleProperties:
    @_fuzz_settings
    @given(gaps=st.lists(st.integers(0, 12_000), min_size=1, max_size=50))
    def test_emissions_spaced_by_window(self, gaps):
        now = 0

        def clock():
            return now

        guard = ThrottleGuard(window_ms=5000, clock=clock)
        click = ClassifiedClick(ClickType.SMS, "SMS", "sms:+336", "a")
        emitted: list[int] = []
        for gap in gaps:
            now += gap
            if not guard.should_suppress(click):
                emitted.append(now)
        assert emitted[0] == gaps[0]
        assert all(b - a >= 5000 for a, b in zip(emitted, emitted[1:]))


@pytest.mark.fuzz
class TestValueProperties:
    @_fuzz_settings
    @given(n=st.integers(-(10**12), 10**12))
    def test_numbers_preserved(self, n):
        assert normalize_value(str(n)) == str(n)
        assert normalize_value(n) == str(n)

    @_fuzz_settings
    @given(url=GENERAL_TEXT)
    def test_utm_never_empty_dict(self, url):
        result = extract_utm(url)
        assert result is None or len(result) > 0
