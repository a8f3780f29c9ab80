# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Fire-and-forget transports from the page collector to the relay.

Both transports return only whether a request was *accepted*; delivery is
never awaited and never retried. Failures are visible in debug logs only.

- :class:`BeaconTransport` — background daemon worker fed through a queue,
  flushed at interpreter exit. Survives the caller (the page navigating away).
- :class:`FetchTransport` — schedules an ``httpx.AsyncClient`` POST on the
  running event loop without awaiting it.
"""

from __future__ import annotations

import asyncio
import logging
import queue
import threading
from collections.abc import Mapping
from typing import Protocol, runtime_checkable
from urllib.parse import urlencode

import httpx

logger = logging.getLogger(__name__)

MAX_BEACON_BYTES = 64 * 1024
_FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded;charset=UTF-8"}
_STOP = object()


@runtime_checkable
class Transport(Protocol):
    """Send-and-forget capability. ``send`` may outlive its caller."""

    def send(self, endpoint: str, fields: Mapping[str, str]) -> bool: ...


class TransportMeta:
    """Approximate delivery counters (best-effort diagnostics)."""

    __slots__ = ("accepted", "dropped", "delivered", "failed")

    def __init__(self) -> None:
        self.accepted: int = 0
        self.dropped: int = 0
        self.delivered: int = 0
        self.failed: int = 0

    def snapshot(self) -> dict:
        return {
            "accepted": self.accepted,
            "dropped": self.dropped,
            "delivered": self.delivered,
            "failed": self.failed,
        }


def encode_fields(fields: Mapping[str, str]) -> bytes:
    return urlencode([(k, "" if v is None else str(v)) for k, v in fields.items()]).encode("utf-8")


# ── Beacon ───────────────────────────────────────────────────────


class BeaconTransport:
    """Queue + daemon worker thread. ``send`` never blocks on the network.

    Refuses (returns False) after shutdown, when the queue is full, or when
    the encoded body exceeds ``max_payload_bytes``.
    """

    def __init__(
        self,
        *,
        max_queue_size: int = 1000,
        max_payload_bytes: int = MAX_BEACON_BYTES,
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.meta = TransportMeta()
        self._max_queue_size = max_queue_size
        self._max_payload_bytes = max_payload_bytes
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._worker: threading.Thread | None = None
        self._lock = threading.Lock()
        self._shutdown = False

    def send(self, endpoint: str, fields: Mapping[str, str]) -> bool:
        if self._shutdown:
            return False
        body = encode_fields(fields)
        if len(body) > self._max_payload_bytes:
            self.meta.dropped += 1
            return False
        # qsize() is approximate under concurrency; good enough for a cap
        if self._queue.qsize() >= self._max_queue_size:
            self.meta.dropped += 1
            return False
        self._queue.put((endpoint, body))
        self.meta.accepted += 1
        self._ensure_worker()
        return True

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._worker = threading.Thread(target=self._run, name="machh-beacon", daemon=True)
            self._worker.start()

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout, headers=_FORM_HEADERS)
        return self._client

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            self._deliver(*item)

    def _deliver(self, endpoint: str, body: bytes) -> None:
        try:
            response = self._get_client().post(endpoint, content=body, headers=_FORM_HEADERS)
            self.meta.delivered += 1
            logger.debug("Beacon delivered to %s (status=%d)", endpoint, response.status_code)
        except httpx.HTTPError as e:
            self.meta.failed += 1
            logger.debug("Beacon to %s failed: %s", endpoint, e)
        except Exception as e:  # nosec B110
            self.meta.failed += 1
            logger.debug("Beacon worker error: %s", e)

    def flush_sync(self) -> None:
        """Deliver whatever is queued on the calling thread."""
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is not _STOP:
                self._deliver(*item)

    def shutdown(self, timeout: float = 2.0) -> None:
        """Stop accepting, let the worker drain, then flush leftovers."""
        if self._shutdown:
            return
        self._shutdown = True
        worker = self._worker
        if worker is not None and worker.is_alive():
            self._queue.put(_STOP)
            worker.join(timeout)
        self.flush_sync()
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None


# ── Fetch ────────────────────────────────────────────────────────


class FetchTransport:
    """Non-awaited ``httpx.AsyncClient`` POST on the running loop.

    Returns False when no event loop is running in the calling thread.
    Scheduled tasks are kept referenced until done so they are not
    garbage-collected mid-flight.
    """

    def __init__(self, *, timeout: float = 5.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.meta = TransportMeta()
        self._timeout = timeout
        self._transport = transport
        self._tasks: set[asyncio.Task] = set()

    def send(self, endpoint: str, fields: Mapping[str, str]) -> bool:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        body = encode_fields(fields)
        task = loop.create_task(self._post(endpoint, body))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.meta.accepted += 1
        return True

    async def _post(self, endpoint: str, body: bytes) -> None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(endpoint, content=body, headers=_FORM_HEADERS)
            self.meta.delivered += 1
            logger.debug("Fetch delivered to %s (status=%d)", endpoint, response.status_code)
        except httpx.HTTPError as e:
            self.meta.failed += 1
            logger.debug("Fetch to %s failed: %s", endpoint, e)
        except Exception as e:  # nosec B110
            self.meta.failed += 1
            logger.debug("Fetch worker error: %s", e)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for in-flight requests (tests and graceful shutdown only)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
