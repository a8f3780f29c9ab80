# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Per-page-session click deduplication.

One :class:`ThrottleGuard` per page view. Entries are never evicted: a page
view is short-lived and the (type, url) key space is small.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from . import ClassifiedClick

DEFAULT_WINDOW_MS = 5000


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class ThrottleGuard:
    """Suppresses repeat (click_type, click_url) emissions within a window."""

    __slots__ = ("_window_ms", "_clock", "_last")

    def __init__(self, window_ms: float = DEFAULT_WINDOW_MS, clock: Callable[[], float] = _monotonic_ms) -> None:
        if window_ms < 0:
            raise ValueError(f"window_ms must be >= 0, got {window_ms}")
        self._window_ms = window_ms
        self._clock = clock
        self._last: dict[str, float] = {}

    @staticmethod
    def key(click: ClassifiedClick) -> str:
        return f"{click.click_type.value}|{click.click_url}"

    def should_suppress(self, click: ClassifiedClick) -> bool:
        """True if suppressed; otherwise records the emission time."""
        key = self.key(click)
        now = self._clock()
        last = self._last.get(key)
        if last is not None and now - last < self._window_ms:
            return True
        self._last[key] = now
        return False

    def __len__(self) -> int:
        return len(self._last)
