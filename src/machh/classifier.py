# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Heuristic conversion-click classifier.

Rules are evaluated in order and the first match wins:

1. Opt-out marker      → None (absolute veto)
2. Opt-in marker       → explicit ``data-machh-type`` or ``custom``
3. Protocol prefix     → tel / mailto / sms / whatsapp
4. Domain substring    → directions / whatsapp / booking (registration order)
5. CTA keyword         → cta_click
6. Otherwise           → None

Classification is a pure function of element state. Locating the element
(ancestor walk from the raw click target) happens in :meth:`ClickClassifier.resolve`.
"""

from __future__ import annotations

import logging

from . import ClassifiedClick, ClickType
from .elements import (
    IGNORE_ATTR,
    TRACK_ATTR,
    TYPE_ATTR,
    TrackableElement,
    element_label,
    element_target,
    find_trackable,
    has_marker,
)
from .patterns import DEFAULT_PATTERNS, PatternRegistry

logger = logging.getLogger(__name__)


class ClickClassifier:
    """Decides whether a clicked element is conversion-relevant."""

    def __init__(self, patterns: PatternRegistry = DEFAULT_PATTERNS) -> None:
        self._patterns = patterns

    @property
    def patterns(self) -> PatternRegistry:
        return self._patterns

    def classify(self, element: TrackableElement) -> ClassifiedClick | None:
        if has_marker(element, IGNORE_ATTR):
            return None

        target = element_target(element)

        if has_marker(element, TRACK_ATTR):
            click_type = ClickType.parse(element.get(TYPE_ATTR)) or ClickType.CUSTOM
            return self._build(element, click_type, target)

        click_type = self._patterns.match_protocol(target)
        if click_type is None:
            click_type = self._patterns.match_domain(target)
        if click_type is not None:
            return self._build(element, click_type, target)

        label = element_label(element)
        if self._patterns.match_keyword(label):
            return ClassifiedClick(
                click_type=ClickType.CTA_CLICK,
                click_label=label,
                click_url=target,
                click_element=element.tag,
            )
        return None

    def resolve(self, target: TrackableElement | None) -> TrackableElement | None:
        """Nearest trackable element for a raw click target, or None."""
        return find_trackable(target)

    def handle(self, target: TrackableElement | None) -> ClassifiedClick | None:
        """Ancestor walk + classification for one click event."""
        element = self.resolve(target)
        if element is None:
            return None
        result = self.classify(element)
        if result is not None:
            logger.debug("Classified <%s> as %s", result.click_element, result.click_type.value)
        return result

    @staticmethod
    def _build(element: TrackableElement, click_type: ClickType, target: str) -> ClassifiedClick:
        return ClassifiedClick(
            click_type=click_type,
            click_label=element_label(element),
            click_url=target,
            click_element=element.tag,
        )
