# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""One page view on the collector side.

Owns the throttle state for the page view, sends the pageview once on load,
and turns raw click targets into reported conversion clicks. Everything up
to transport dispatch is synchronous, so the throttle check-and-set has no
race window within a session.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .. import ClassifiedClick
from ..classifier import ClickClassifier
from ..config import CollectorConfig
from ..elements import TrackableElement
from ..throttle import ThrottleGuard
from .reporter import ClickReporter, PageviewReporter
from .transport import Transport

logger = logging.getLogger(__name__)


class PageSession:
    """Collector state for a single page view."""

    def __init__(
        self,
        config: CollectorConfig,
        url: str,
        referrer: str = "",
        *,
        transports: Sequence[Transport] | None = None,
        classifier: ClickClassifier | None = None,
        throttle: ThrottleGuard | None = None,
    ) -> None:
        if transports is None:
            from . import default_transports

            transports = default_transports()
        self.config = config
        self.url = url
        self.referrer = referrer
        self.classifier = classifier if classifier is not None else ClickClassifier()
        self.throttle = throttle if throttle is not None else ThrottleGuard()
        self._pageviews = PageviewReporter(config.endpoint, transports)
        self._clicks = ClickReporter(config.endpoint, transports)
        self._loaded = False

    @property
    def active(self) -> bool:
        return self.config.active

    def on_load(self) -> bool:
        """Report the pageview. Only the first call per session sends."""
        if not self.active or self._loaded:
            return False
        self._loaded = True
        return self._pageviews.report(self.url, self.referrer)

    def on_click(self, target: TrackableElement | None) -> ClassifiedClick | None:
        """Classify, throttle and report a click. Returns the reported click."""
        if not self.active:
            return None
        click = self.classifier.handle(target)
        if click is None:
            return None
        if self.throttle.should_suppress(click):
            logger.debug("Suppressed repeat %s click on %s", click.click_type.value, click.click_url)
            return None
        self._clicks.report(click, self.url, self.referrer)
        return click
