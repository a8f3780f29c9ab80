# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Machh exception hierarchy.

All Machh-specific errors inherit from MachhError, allowing callers
to catch the base class for any tracking failure or specific subclasses
for targeted handling.

Tracking failures never interrupt the page flow: the relay and the form
dispatcher convert these into soft outcomes at their boundary.
"""

from __future__ import annotations


class MachhError(Exception):
    """Base exception for all Machh errors."""


class ConfigurationError(MachhError):
    """Relay configuration is incomplete (e.g. no client key)."""

    def __init__(self, message: str, *, setting: str = "") -> None:
        super().__init__(message)
        self.setting = setting


class TransportError(MachhError):
    """Network, DNS, or timeout failure while forwarding an event."""

    def __init__(self, message: str, *, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class ValidationError(MachhError):
    """Inbound event rejected at the relay boundary (never forwarded)."""

    def __init__(self, message: str, *, field: str = "") -> None:
        super().__init__(message)
        self.field = field


class MalformedSubmissionError(MachhError):
    """Form plugin callback arguments are absent or not a field collection."""

    def __init__(self, message: str, *, source: str = "") -> None:
        super().__init__(message)
        self.source = source
