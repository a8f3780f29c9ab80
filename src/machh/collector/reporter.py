# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Click and pageview reporters.

Build the form-encoded fields the relay's collector endpoint expects and
hand them to the first transport that accepts them. Nothing is returned
to the page flow except whether dispatch happened.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .. import ClassifiedClick
from .transport import Transport

logger = logging.getLogger(__name__)

PAGEVIEW_ACTION = "machh_pageview"
CLICK_ACTION = "machh_click"


class _Reporter:
    def __init__(self, endpoint: str, transports: Sequence[Transport]) -> None:
        self._endpoint = endpoint
        self._transports = tuple(transports)

    def _dispatch(self, fields: dict[str, str]) -> bool:
        for transport in self._transports:
            try:
                if transport.send(self._endpoint, fields):
                    return True
            except Exception as e:  # nosec B110
                logger.debug("%s refused %s: %s", type(transport).__name__, fields.get("action"), e)
        logger.debug("No transport accepted %s", fields.get("action"))
        return False


class PageviewReporter(_Reporter):
    def report(self, page_url: str, referrer: str = "") -> bool:
        return self._dispatch(
            {
                "action": PAGEVIEW_ACTION,
                "url": page_url,
                "referrer": referrer or "",
            }
        )


class ClickReporter(_Reporter):
    def report(self, click: ClassifiedClick, page_url: str, referrer: str = "") -> bool:
        fields = {
            "action": CLICK_ACTION,
            "url": page_url,
            "referrer": referrer or "",
        }
        fields.update(click.to_fields())
        return self._dispatch(fields)
