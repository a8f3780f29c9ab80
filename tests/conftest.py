# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import machh  # noqa: F401
except ImportError:
    raise ImportError("machh is not installed. Run: pip install -e '.[dev]'") from None

import json

import httpx
import pytest

from machh.config import RelayConfig
from machh.context import RequestContext
from machh.relay import IngestRelay
from tests._helpers import RecordingHandler


@pytest.fixture
def relay_config() -> RelayConfig:
    return RelayConfig(client_key="test-key", ingest_base_url="https://ingest.example.com/", home_url="https://www.site.fr/")


@pytest.fixture
def ingest_handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def relay(relay_config, ingest_handler) -> IngestRelay:
    return IngestRelay(relay_config, transport=httpx.MockTransport(ingest_handler))


@pytest.fixture
def request_ctx() -> RequestContext:
    return RequestContext(
        headers={
            "Host": "www.site.fr",
            "User-Agent": "Mozilla/5.0 (Test)",
            "Referer": "https://www.site.fr/contact",
            "X-Forwarded-For": "203.0.113.7, 10.0.0.1",
        },
        cookies={
            "machh_did": "a" * 32,
            "machh_utm": json.dumps({"utm_source": "google", "gclid": "abc", "foo": "bar"}),
        },
        peer_ip="10.0.0.1",
        home_url="https://www.site.fr/",
    )


@pytest.fixture(autouse=True)
def _reset_collector():
    """Drop the shared beacon between tests."""
    yield
    from machh import collector

    collector._reset_for_testing()
