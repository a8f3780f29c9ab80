# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for machh.collector — page session, reporters, transports."""

from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest

from machh import ClassifiedClick, ClickType, collector
from machh.classifier import ClickClassifier
from machh.collector import (
    BeaconTransport,
    ClickReporter,
    FetchTransport,
    PageSession,
    PageviewReporter,
    Transport,
)
from machh.config import CollectorConfig
from machh.elements import HtmlElement, parse_fragment
from machh.throttle import ThrottleGuard
from tests._helpers import RecordingHandler

ENDPOINT = "https://www.site.fr/collect"


class RecordingTransport:
    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.sent: list[tuple[str, dict]] = []

    def send(self, endpoint, fields) -> bool:
        self.sent.append((endpoint, dict(fields)))
        return self.accept


class BrokenTransport:
    def send(self, endpoint, fields) -> bool:
        raise RuntimeError("unavailable")


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session(transport, clock) -> PageSession:
    return PageSession(
        CollectorConfig(endpoint=ENDPOINT),
        "https://www.site.fr/contact",
        "https://google.com/",
        transports=[transport],
        throttle=ThrottleGuard(clock=clock),
    )


# ── PageSession ──────────────────────────────────────────────────────


class TestPageSession:
    def test_pageview_sent_once(self, session, transport):
        assert session.on_load() is True
        assert session.on_load() is False
        assert transport.sent == [
            (
                ENDPOINT,
                {"action": "machh_pageview", "url": "https://www.site.fr/contact", "referrer": "https://google.com/"},
            )
        ]

    def test_tel_click_throttled(self, session, transport, clock):
        link = parse_fragment('<a href="tel:+33612345678"><span>Appeler</span></a>')
        span = HtmlElement(link.raw[0])

        click = session.on_click(span)
        assert click == ClassifiedClick(ClickType.PHONE_CALL, "Appeler", "tel:+33612345678", "a")

        clock.now = 3000
        assert session.on_click(span) is None
        clock.now = 6000
        assert session.on_click(link) is not None

        fields = [f for _, f in transport.sent]
        assert len(fields) == 2
        assert fields[0] == {
            "action": "machh_click",
            "url": "https://www.site.fr/contact",
            "referrer": "https://google.com/",
            "click_type": "phone_call",
            "click_label": "Appeler",
            "click_url": "tel:+33612345678",
            "click_element": "a",
        }

    def test_other_urls_not_throttled(self, session, transport):
        session.on_click(parse_fragment('<a href="tel:+331">A</a>'))
        session.on_click(parse_fragment('<a href="tel:+332">B</a>'))
        assert len(transport.sent) == 2

    def test_non_conversion_click(self, session, transport):
        assert session.on_click(parse_fragment('<a href="/blog">Nos articles</a>')) is None
        assert session.on_click(None) is None
        assert transport.sent == []

    @pytest.mark.parametrize("config", [CollectorConfig(ENDPOINT, enabled=False), CollectorConfig(ENDPOINT, is_admin=True)])
    def test_inactive_session_sends_nothing(self, config, transport):
        session = PageSession(config, "https://www.site.fr/", transports=[transport])
        assert session.on_load() is False
        assert session.on_click(parse_fragment('<a href="mailto:a@b.fr">Mail</a>')) is None
        assert transport.sent == []

    def test_injected_empty_guard_kept(self, transport):
        guard = ThrottleGuard(window_ms=0)
        classifier = ClickClassifier()
        assert len(guard) == 0

        session = PageSession(
            CollectorConfig(ENDPOINT), "https://www.site.fr/", transports=[transport], classifier=classifier, throttle=guard
        )
        assert session.throttle is guard
        assert session.classifier is classifier

        link = parse_fragment('<a href="tel:+33612345678">Appeler</a>')
        assert session.on_click(link) is not None
        assert session.on_click(link) is not None
        assert len(transport.sent) == 2

    def test_default_transports(self):
        session = PageSession(CollectorConfig(ENDPOINT), "https://www.site.fr/")
        transports = session._pageviews._transports
        assert isinstance(transports[0], BeaconTransport)
        assert isinstance(transports[1], FetchTransport)


# ── Reporters ────────────────────────────────────────────────────────


class TestReporters:
    def test_fallback_on_refusal(self):
        refusing, accepting = RecordingTransport(accept=False), RecordingTransport()
        assert PageviewReporter(ENDPOINT, [refusing, accepting]).report("https://www.site.fr/") is True
        assert len(refusing.sent) == 1
        assert len(accepting.sent) == 1

    def test_fallback_on_error(self):
        accepting = RecordingTransport()
        click = ClassifiedClick(ClickType.CUSTOM, "Go", "", "button")
        assert ClickReporter(ENDPOINT, [BrokenTransport(), accepting]).report(click, "https://www.site.fr/") is True
        assert accepting.sent[0][1]["click_type"] == "custom"

    def test_nothing_accepts(self):
        assert PageviewReporter(ENDPOINT, [RecordingTransport(accept=False)]).report("https://www.site.fr/") is False

    def test_transports_satisfy_protocol(self):
        assert isinstance(RecordingTransport(), Transport)
        assert isinstance(BeaconTransport(), Transport)
        assert isinstance(FetchTransport(), Transport)


# ── BeaconTransport ──────────────────────────────────────────────────


@pytest.mark.slow
class TestBeaconTransport:
    def test_delivered_on_shutdown(self):
        handler = RecordingHandler(status_code=200)
        beacon = BeaconTransport(client=httpx.Client(transport=httpx.MockTransport(handler)))
        assert beacon.send(ENDPOINT, {"action": "machh_pageview", "url": "https://www.site.fr/é"}) is True
        beacon.shutdown()

        assert len(handler.requests) == 1
        request = handler.requests[0]
        assert request.headers["content-type"].startswith("application/x-www-form-urlencoded")
        assert parse_qs(request.content.decode()) == {"action": ["machh_pageview"], "url": ["https://www.site.fr/é"]}
        assert beacon.meta.snapshot() == {"accepted": 1, "dropped": 0, "delivered": 1, "failed": 0}

    def test_refuses_after_shutdown(self):
        beacon = BeaconTransport(client=httpx.Client(transport=httpx.MockTransport(RecordingHandler())))
        beacon.shutdown()
        assert beacon.send(ENDPOINT, {"action": "x"}) is False

    def test_oversized_payload_dropped(self):
        beacon = BeaconTransport(max_payload_bytes=32)
        assert beacon.send(ENDPOINT, {"url": "x" * 100}) is False
        assert beacon.meta.dropped == 1

    def test_full_queue_dropped(self):
        beacon = BeaconTransport(max_queue_size=0)
        assert beacon.send(ENDPOINT, {"action": "x"}) is False
        assert beacon.meta.dropped == 1

    def test_network_failure_counted(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        beacon = BeaconTransport(client=httpx.Client(transport=httpx.MockTransport(handler)))
        assert beacon.send(ENDPOINT, {"action": "x"}) is True
        beacon.shutdown()
        assert beacon.meta.failed == 1


class TestSharedBeacon:
    def test_singleton(self):
        assert collector.get_beacon() is collector.get_beacon()

    def test_reset(self):
        first = collector.get_beacon()
        collector._reset_for_testing()
        assert collector.get_beacon() is not first

    def test_shutdown_without_beacon(self):
        collector.shutdown()


# ── FetchTransport ───────────────────────────────────────────────────


class TestFetchTransport:
    def test_no_running_loop(self):
        assert FetchTransport().send(ENDPOINT, {"action": "x"}) is False

    async def test_scheduled_without_await(self):
        handler = RecordingHandler(status_code=200)
        fetch = FetchTransport(transport=httpx.MockTransport(handler))
        assert fetch.send(ENDPOINT, {"action": "machh_click", "click_type": "sms"}) is True
        assert fetch.pending == 1

        await fetch.drain()
        assert fetch.pending == 0
        assert fetch.meta.delivered == 1
        assert parse_qs(handler.requests[0].content.decode())["click_type"] == ["sms"]

    async def test_failure_swallowed(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        fetch = FetchTransport(transport=httpx.MockTransport(handler))
        fetch.send(ENDPOINT, {"action": "x"})
        await fetch.drain()
        assert fetch.meta.failed == 1

    async def test_unexpected_error_swallowed(self):
        def handler(request):
            raise RuntimeError("boom")

        fetch = FetchTransport(transport=httpx.MockTransport(handler))
        assert fetch.send(ENDPOINT, {"action": "x"}) is True
        await fetch.drain()
        assert fetch.pending == 0
        assert fetch.meta.failed == 1
        assert fetch.meta.delivered == 0
