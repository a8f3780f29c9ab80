# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Page collector — pageview and conversion-click reporting.

Usage:
    from machh.collector import PageSession
    from machh.config import CollectorConfig

    session = PageSession(CollectorConfig(endpoint="https://site.test/collect"), url)
    session.on_load()
    session.on_click(element)

The shared beacon worker is created lazily and flushed at interpreter exit.
"""

from __future__ import annotations

import atexit
import contextlib

from .reporter import CLICK_ACTION, PAGEVIEW_ACTION, ClickReporter, PageviewReporter
from .session import PageSession
from .transport import BeaconTransport, FetchTransport, Transport

__all__ = [
    "CLICK_ACTION",
    "PAGEVIEW_ACTION",
    "BeaconTransport",
    "ClickReporter",
    "FetchTransport",
    "PageSession",
    "PageviewReporter",
    "Transport",
    "default_transports",
    "get_beacon",
    "shutdown",
]

_beacon: BeaconTransport | None = None
_fetch: FetchTransport | None = None


def get_beacon() -> BeaconTransport:
    """Shared beacon transport. Registers the atexit flush on first use."""
    global _beacon
    if _beacon is None:
        _beacon = BeaconTransport()
        atexit.register(shutdown)
    return _beacon


def default_transports() -> tuple[Transport, ...]:
    """Beacon first, fetch as fallback."""
    global _fetch
    if _fetch is None:
        _fetch = FetchTransport()
    return (get_beacon(), _fetch)


def shutdown() -> None:
    """Flush queued beacons. Never raises."""
    try:
        if _beacon is not None:
            _beacon.shutdown()
    except Exception:  # nosec B110
        pass


def _reset_for_testing() -> None:
    global _beacon, _fetch
    if _beacon is not None:
        with contextlib.suppress(Exception):
            _beacon.shutdown(timeout=0.1)
    _beacon = None
    _fetch = None
