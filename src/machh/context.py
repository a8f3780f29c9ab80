# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Visitor request context: cookies, headers and client address.

Framework-agnostic snapshot of what the normalizer needs from the inbound
request. ``RequestContext.from_request()`` builds one from a Starlette
request; tests construct it directly.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from .gateway import client_ip_from_mapping, validate_ip
from .sanitizer import sanitize_text_field, sanitize_url
from .utm import parse_utm_cookie

if TYPE_CHECKING:
    from starlette.requests import Request

logger = logging.getLogger(__name__)

DEVICE_ID_COOKIE = "machh_did"
UTM_COOKIE = "machh_utm"

_MAX_USER_AGENT = 512


def strip_www(host: str) -> str:
    host = (host or "").strip().lower()
    # Drop a port suffix but keep IPv6 literals intact
    if host.startswith("["):
        host = host.split("]")[0] + "]"
    elif host.count(":") == 1:
        host = host.split(":")[0]
    return host[4:] if host.startswith("www.") else host


@dataclass(frozen=True)
class RequestContext:
    """Read-only view of one inbound request."""

    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    peer_ip: str = ""
    client_ip: str | None = None  # pre-resolved by GatewayMiddleware
    home_url: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", {k.lower(): v for k, v in self.headers.items()})

    @classmethod
    def from_request(cls, request: Request, *, home_url: str = "") -> RequestContext:
        client = request.client
        state_ip = getattr(request.state, "client_ip", None)
        return cls(
            headers=dict(request.headers),
            cookies=dict(request.cookies),
            peer_ip=client.host if client else "",
            client_ip=state_ip,
            home_url=home_url,
        )

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    # ── Identity ──────────────────────────────────────────────────

    @property
    def device_id(self) -> str:
        """``machh_did`` cookie value, ``""`` when absent."""
        return sanitize_text_field(self.cookies.get(DEVICE_ID_COOKIE, ""))

    @property
    def first_touch_utm(self) -> dict[str, str] | None:
        return parse_utm_cookie(self.cookies.get(UTM_COOKIE))

    # ── Headers ───────────────────────────────────────────────────

    @property
    def user_agent(self) -> str:
        return sanitize_text_field(self.header("user-agent") or "", max_len=_MAX_USER_AGENT)

    @property
    def referrer(self) -> str:
        return sanitize_url(self.header("referer") or "")

    @property
    def site_domain(self) -> str:
        """Host without a leading ``www.``; falls back to the home URL host."""
        host = sanitize_text_field(self.header("host") or "")
        if not host and self.home_url:
            host = urlsplit(self.home_url).netloc
        return strip_www(host)

    @property
    def ip(self) -> str:
        if self.client_ip is not None:
            return validate_ip(self.client_ip)
        return client_ip_from_mapping(self.headers, self.peer_ip)

    def current_url_best_effort(self, meta_url: str = "") -> str:
        """Page URL for form submissions: plugin meta URL > referrer > home URL."""
        for candidate in (meta_url, self.referrer, self.home_url):
            url = sanitize_url(candidate)
            if url:
                return url
        return ""
