# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Gateway middleware — client IP resolution + request-ID propagation.

Standalone leaf module with zero dependency on server.py.

Design choices:

- **Pure ASGI** — no BaseHTTPMiddleware (avoids body buffering).
- **scope["client"] immutable** — the resolved visitor IP is stored in
  ``scope["state"]["client_ip"]`` only.
- **Fixed header priority** — CDN header, X-Forwarded-For (first element),
  X-Real-IP, Client-IP, then the TCP peer. The first syntactically valid
  address wins; ``""`` when none validates.
- **X-Request-ID sanitization** — regex validation prevents log injection.
- **IPv6 normalization** — brackets and zone IDs stripped before parsing.
"""

from __future__ import annotations

import ipaddress
import logging
import re
import uuid
from collections.abc import Callable, Mapping

import structlog

logger = logging.getLogger(__name__)

# Checked in this order; X-Forwarded-For contributes its first element only.
CLIENT_IP_HEADERS: tuple[str, ...] = (
    "cf-connecting-ip",
    "x-forwarded-for",
    "x-real-ip",
    "client-ip",
)

_REQUEST_ID_RE = re.compile(r"^[a-zA-Z0-9._\-]{1,128}$")


# ── Internal helpers ──────────────────────────────────────────────────


def _sanitize_request_id(raw: str | None) -> str:
    """Validate and return request ID, or generate a new UUID.

    Only ``[a-zA-Z0-9._-]{1,128}`` passes validation.
    """
    if raw and _REQUEST_ID_RE.match(raw):
        return raw
    return uuid.uuid4().hex


def _normalize_ip_str(raw: str) -> str:
    """Normalize an IP string for ``ipaddress.ip_address()``.

    Handles IPv6 brackets (``[2001:db8::1]`` → ``2001:db8::1``)
    and zone IDs (``fe80::1%eth0`` → ``fe80::1``).
    """
    s = raw.strip()
    # Strip brackets
    if s.startswith("[") and s.endswith("]"):
        s = s[1:-1]
    # Strip zone ID
    if "%" in s:
        s = s[: s.index("%")]
    return s


def validate_ip(raw: str | None) -> str:
    """Canonical form of *raw* if it is a valid IPv4/IPv6 address, else ``""``."""
    if not raw:
        return ""
    try:
        return str(ipaddress.ip_address(_normalize_ip_str(raw)))
    except ValueError:
        return ""


def _get_header(raw_headers: list[tuple[bytes, bytes]], name: bytes) -> str | None:
    """Get the first header value by lowercase name."""
    for hdr_name, hdr_value in raw_headers:
        if hdr_name.lower() == name:
            return hdr_value.decode("latin-1").strip()
    return None


def resolve_client_ip(get_header: Callable[[str], str | None], peer_ip: str = "") -> str:
    """First valid IP across the proxy/CDN headers, then the direct peer.

    *get_header* takes a lowercase header name and returns its value or None.
    """
    for name in CLIENT_IP_HEADERS:
        value = get_header(name)
        if not value:
            continue
        if name == "x-forwarded-for":
            value = value.split(",")[0]
        ip = validate_ip(value)
        if ip:
            return ip
    return validate_ip(peer_ip)


def client_ip_from_mapping(headers: Mapping[str, str], peer_ip: str = "") -> str:
    """:func:`resolve_client_ip` over a case-insensitive header mapping."""
    lowered = {k.lower(): v for k, v in headers.items()}
    return resolve_client_ip(lowered.get, peer_ip)


# ── ASGI Middleware ───────────────────────────────────────────────────


class GatewayMiddleware:
    """Pure ASGI middleware in front of the relay app.

    Resolves the visitor IP, propagates ``X-Request-ID``, stores both in
    ``scope["state"]`` and binds the request ID into structlog contextvars
    for the duration of the request.

    **Never** modifies ``scope["client"]``.
    """

    def __init__(self, app) -> None:
        self.app = app

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        scope.setdefault("state", {})

        raw_headers: list[tuple[bytes, bytes]] = scope.get("headers", [])
        _client = scope.get("client")
        peer_ip = _client[0] if _client else ""

        client_ip = resolve_client_ip(lambda name: _get_header(raw_headers, name.encode("latin-1")), peer_ip)

        raw_rid = _get_header(raw_headers, b"x-request-id")
        request_id = _sanitize_request_id(raw_rid)

        scope["state"]["client_ip"] = client_ip
        scope["state"]["request_id"] = request_id

        # Wrap send to inject X-Request-ID in response
        _rid_injected = False

        async def _send_with_request_id(message) -> None:
            nonlocal _rid_injected
            if message["type"] == "http.response.start" and not _rid_injected:
                _rid_injected = True
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            await self.app(scope, receive, _send_with_request_id)
