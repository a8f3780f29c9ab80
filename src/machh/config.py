# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Relay and collector configuration.

Immutable dataclasses validated at construction. ``RelayConfig.from_env()``
reads ``MACHH_*`` environment variables; CLI flags override them in
:mod:`machh.cli`.
"""

from __future__ import annotations

import logging
import os
from contextlib import suppress
from dataclasses import dataclass, field, replace
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

DEFAULT_INGEST_BASE_URL = "https://ingest-machh.test"
DEFAULT_KEY_HEADER = "X-MACHH-KEY"
DEFAULT_TIMEOUT = 2.0

# Request paths that never produce pageview/click events (host admin + crawler files).
DEFAULT_IGNORED_PATHS: tuple[str, ...] = (
    "/wp-admin",
    "/wp-json",
    "/sitemap.xml",
    "/robots.txt",
    "/favicon.ico",
    "/wp-login.php",
    "/wp-cron.php",
)

DEFAULT_FORM_SOURCES: tuple[str, ...] = ("cf7", "elementor", "wpforms", "metform")

_TRUTHY = ("1", "true", "yes", "on")


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in _TRUTHY


@dataclass(frozen=True, slots=True)
class RelayConfig:
    """Immutable server-side relay configuration.

    ``client_key`` is the pre-shared credential sent in ``key_header``; an
    empty key makes every forward fail fast with ``config_missing``.
    """

    enabled: bool = True
    client_key: str = field(default="", repr=False)
    ingest_base_url: str = DEFAULT_INGEST_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    key_header: str = DEFAULT_KEY_HEADER
    home_url: str = ""
    debug: bool = False
    form_sources: tuple[str, ...] = DEFAULT_FORM_SOURCES
    ignored_paths: tuple[str, ...] = DEFAULT_IGNORED_PATHS

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")
        if not self.key_header:
            raise ValueError("key_header must not be empty")
        base = (self.ingest_base_url or DEFAULT_INGEST_BASE_URL).strip().rstrip("/")
        scheme = urlsplit(base).scheme
        if scheme not in ("http", "https"):
            raise ValueError(f"ingest_base_url must be http(s), got {self.ingest_base_url!r}")
        object.__setattr__(self, "ingest_base_url", base)
        object.__setattr__(self, "client_key", self.client_key.strip())
        object.__setattr__(self, "form_sources", tuple(s.strip().lower() for s in self.form_sources if s.strip()))

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_key)

    def with_overrides(self, **changes) -> RelayConfig:
        """Return a copy with *changes* applied (CLI flags over env)."""
        return replace(self, **changes)

    @classmethod
    def from_env(cls) -> RelayConfig:
        """Build from ``MACHH_*`` environment variables.

        Invalid numeric values are ignored with a warning and the default kept.
        """
        kwargs: dict = {
            "enabled": _env_flag("MACHH_ENABLED", default=True),
            "client_key": os.environ.get("MACHH_CLIENT_KEY", ""),
            "home_url": os.environ.get("MACHH_HOME_URL", "").strip(),
            "debug": _env_flag("MACHH_DEBUG"),
        }

        base = os.environ.get("MACHH_INGEST_BASE_URL", "").strip()
        if base:
            kwargs["ingest_base_url"] = base

        raw_timeout = os.environ.get("MACHH_TIMEOUT", "").strip()
        if raw_timeout:
            with suppress(ValueError):
                kwargs["timeout"] = float(raw_timeout)
            if "timeout" not in kwargs:
                logger.warning("Ignoring invalid MACHH_TIMEOUT=%r", raw_timeout)

        raw_sources = os.environ.get("MACHH_FORM_SOURCES", "").strip()
        if raw_sources:
            kwargs["form_sources"] = tuple(s.strip() for s in raw_sources.split(",") if s.strip())

        return cls(**kwargs)


@dataclass(frozen=True, slots=True)
class CollectorConfig:
    """Bootstrap data handed to the page collector.

    A collector is inert when tracking is disabled or the visitor is an
    administrator; pageviews and clicks are then never reported.
    """

    endpoint: str
    enabled: bool = True
    is_admin: bool = False

    def __post_init__(self) -> None:
        if not self.endpoint:
            raise ValueError("endpoint must not be empty")

    @property
    def active(self) -> bool:
        return self.enabled and not self.is_admin
