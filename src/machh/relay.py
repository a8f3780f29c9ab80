# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Ingestion API client.

Serializes normalized events as JSON and POSTs them to the Machh ingestion
API with the pre-shared client key. One blocking request per event, short
fixed timeout, no retries. Failures never raise: they come back as a
:class:`RelayResult` with ``error`` set.

Endpoints:
    POST {base}/ingest/pageview          pageview payload
    POST {base}/ingest/form-submitted    form payload
    POST {base}/ingest                   {"source", "event_type", "payload"} (clicks)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import httpx

from . import EventPayload
from .config import RelayConfig
from .errors import ConfigurationError, TransportError

logger = logging.getLogger(__name__)

PAGEVIEW_PATH = "/ingest/pageview"
FORM_SUBMITTED_PATH = "/ingest/form-submitted"
UNIFIED_PATH = "/ingest"

CLICK_SOURCE = "machh-plugin"
CLICK_EVENT_TYPE = "button_clicked"

LOCAL_TLDS: tuple[str, ...] = (".test", ".local", ".localhost", ".dev")

CONFIG_MISSING = "config_missing"
HTTP_REQUEST_FAILED = "http_request_failed"


def is_local_host(url: str) -> bool:
    """True for local-development hosts whose certificates are self-signed."""
    host = (urlsplit(url).hostname or "").lower()
    if not host:
        return False
    if host.endswith(LOCAL_TLDS):
        return True
    return host == "localhost" or host.startswith("127.0.0.1")


@dataclass(frozen=True, slots=True)
class RelayResult:
    """Outcome of one forward: status + raw body, or an error code."""

    status_code: int = 0
    body: str = ""
    error: str = ""
    message: str = ""

    @property
    def ok(self) -> bool:
        """Request completed (any status). Non-2xx is still a completed send."""
        return not self.error

    @property
    def success(self) -> bool:
        return self.ok and 200 <= self.status_code < 300

    @classmethod
    def from_exception(cls, exc: ConfigurationError | TransportError) -> RelayResult:
        code = CONFIG_MISSING if isinstance(exc, ConfigurationError) else HTTP_REQUEST_FAILED
        return cls(error=code, message=str(exc))


class IngestRelay:
    """Forwards events to the ingestion API. Never inspects payload semantics.

    ``transport`` replaces the network layer (``httpx.MockTransport`` in tests).
    """

    def __init__(self, config: RelayConfig, *, transport: httpx.BaseTransport | None = None) -> None:
        self.config = config
        self._transport = transport

    def url_for(self, path: str) -> str:
        return self.config.ingest_base_url + path

    def send(self, path: str, body: dict[str, Any]) -> RelayResult:
        try:
            status_code, text = self._post(path, body)
        except (ConfigurationError, TransportError) as e:
            return RelayResult.from_exception(e)

        if not 200 <= status_code < 300:
            logger.warning("Ingestion API returned non-success status: %d", status_code)
        return RelayResult(status_code=status_code, body=text)

    def _post(self, path: str, body: dict[str, Any]) -> tuple[int, str]:
        if not self.config.has_credentials:
            logger.error("Client API key not configured")
            raise ConfigurationError("Client API key not configured", setting="client_key")

        url = self.url_for(path)
        verify = not is_local_host(url)
        headers = {
            "Content-Type": "application/json",
            self.config.key_header: self.config.client_key,
        }
        content = json.dumps(body, ensure_ascii=False, separators=(",", ":"))
        logger.debug("Sending request to %s: %s", url, content)

        try:
            with httpx.Client(timeout=self.config.timeout, verify=verify, transport=self._transport) as client:
                response = client.post(url, content=content.encode("utf-8"), headers=headers)
        except httpx.HTTPError as e:
            logger.error("HTTP request to %s failed: %s", path, e)
            raise TransportError(str(e) or type(e).__name__, url=url) from e

        logger.debug("Response from %s: status=%d, body=%s", path, response.status_code, response.text)
        return response.status_code, response.text

    # ── Event-specific helpers ───────────────────────────────────

    def send_pageview(self, payload: EventPayload) -> RelayResult:
        return self.send(PAGEVIEW_PATH, payload.to_dict())

    def send_form_submitted(self, payload: EventPayload) -> RelayResult:
        return self.send(FORM_SUBMITTED_PATH, payload.to_dict())

    def send_click(self, payload: EventPayload) -> RelayResult:
        return self.send(
            UNIFIED_PATH,
            {
                "source": CLICK_SOURCE,
                "event_type": CLICK_EVENT_TYPE,
                "payload": payload.to_dict(),
            },
        )
