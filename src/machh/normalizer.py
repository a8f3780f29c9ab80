# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Event normalizer — builds the shared envelope for every forwarded event.

Envelope fields:
    device_id    ``machh_did`` cookie, or a fresh 16-byte hex id (logged)
    url          page URL the event happened on
    referrer     referring URL
    site_domain  Host without ``www.``
    utm          whitelisted params from the URL (pageview/click) or the
                 first-touch cookie (form submission); None when empty
    user_agent   sanitized User-Agent header
    ip           first valid proxy/CDN/peer address, ``""`` if none
    ts           epoch seconds at normalization time
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable, Mapping
from types import MappingProxyType

from . import CanonicalFormFields, ClassifiedClick, EventKind, EventPayload
from .context import RequestContext
from .utm import extract_utm

logger = logging.getLogger(__name__)


def generate_device_id() -> str:
    return secrets.token_hex(16)


class EventNormalizer:
    """Assembles :class:`~machh.EventPayload` objects from request context."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock

    def _device_id(self, ctx: RequestContext, kind: EventKind) -> str:
        device_id = ctx.device_id
        if not device_id:
            device_id = generate_device_id()
            logger.warning("Device ID cookie not found for %s, generated fallback", kind.value)
        return device_id

    def _envelope(
        self,
        kind: EventKind,
        ctx: RequestContext,
        *,
        url: str,
        referrer: str,
        utm: Mapping[str, str] | None,
        details: Mapping[str, object],
    ) -> EventPayload:
        return EventPayload(
            kind=kind,
            device_id=self._device_id(ctx, kind),
            url=url,
            referrer=referrer,
            site_domain=ctx.site_domain,
            user_agent=ctx.user_agent,
            ip=ctx.ip,
            ts=int(self._clock()),
            utm=MappingProxyType(dict(utm)) if utm else None,
            details=MappingProxyType(dict(details)),
        )

    def pageview(self, ctx: RequestContext, url: str, referrer: str = "") -> EventPayload:
        return self._envelope(
            EventKind.PAGEVIEW,
            ctx,
            url=url,
            referrer=referrer,
            utm=extract_utm(url),
            details={},
        )

    def click(self, ctx: RequestContext, url: str, referrer: str, click: ClassifiedClick) -> EventPayload:
        return self._envelope(
            EventKind.CLICK,
            ctx,
            url=url,
            referrer=referrer,
            utm=extract_utm(url),
            details=click.to_fields(),
        )

    def form_submission(
        self,
        ctx: RequestContext,
        *,
        form_id: int | str,
        form_name: str,
        fields: CanonicalFormFields,
        raw_fields: Mapping[str, str],
        meta_url: str = "",
    ) -> EventPayload:
        """Form events take the first-touch UTM cookie, not the page URL."""
        details = {
            "form_id": form_id,
            "form_name": form_name,
            "email": fields.email,
            "name": fields.name,
            "phone": fields.phone,
            "message": fields.message,
            "raw_fields": MappingProxyType(dict(raw_fields)),
        }
        return self._envelope(
            EventKind.FORM_SUBMITTED,
            ctx,
            url=ctx.current_url_best_effort(meta_url),
            referrer=ctx.referrer,
            utm=ctx.first_touch_utm,
            details=details,
        )
