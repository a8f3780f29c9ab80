# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Machh relay: conversion-click classification and form-field normalization.

Observes pageviews and clicks, classifies conversion-relevant clicks,
normalizes form-plugin submissions, and forwards canonical events to the
Machh ingestion API:
- ClassifiedClick: a click judged conversion-relevant, with its type
- CanonicalFormFields: email/name/phone/message resolved from any form plugin
- EventPayload: the shared envelope every forwarded event carries
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

__version__ = "0.3.0"


class ClickType(str, Enum):
    """Closed set of reasons a click is considered conversion-relevant."""

    PHONE_CALL = "phone_call"
    EMAIL_CLICK = "email_click"
    SMS = "sms"
    WHATSAPP = "whatsapp"
    DIRECTIONS = "directions"
    BOOKING = "booking"
    CTA_CLICK = "cta_click"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, raw: str | None) -> ClickType | None:
        """Return the member for *raw*, or None when it is not a known type."""
        if not raw:
            return None
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class ClassifiedClick:
    """A click the classifier judged conversion-relevant."""

    click_type: ClickType
    click_label: str  # ≤100 chars, whitespace-collapsed
    click_url: str  # href / target of the element, may be ""
    click_element: str  # lowercase tag name (a, button, input, div...)

    def to_fields(self) -> dict[str, str]:
        return {
            "click_type": self.click_type.value,
            "click_label": self.click_label,
            "click_url": self.click_url,
            "click_element": self.click_element,
        }


@dataclass(frozen=True, slots=True)
class CanonicalFormFields:
    """Role fields resolved from a form submission. Absent roles are ""."""

    email: str = ""
    name: str = ""
    phone: str = ""
    message: str = ""


class EventKind(str, Enum):
    PAGEVIEW = "pageview"
    CLICK = "click"
    FORM_SUBMITTED = "form_submitted"


@dataclass(frozen=True)
class EventPayload:
    """Normalized event ready for the ingestion API.

    The envelope fields are shared by every event kind; ``details`` holds the
    kind-specific fields (click_* for clicks, form fields for submissions).
    Mappings are stored read-only so a payload can be logged and relayed
    without being mutated in between.
    """

    kind: EventKind
    device_id: str
    url: str
    referrer: str
    site_domain: str
    user_agent: str
    ip: str
    ts: int
    utm: MappingProxyType | None = None
    details: MappingProxyType = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        if self.utm is not None and not isinstance(self.utm, MappingProxyType):
            object.__setattr__(self, "utm", MappingProxyType(dict(self.utm)))
        if not isinstance(self.details, MappingProxyType):
            object.__setattr__(self, "details", MappingProxyType(dict(self.details)))

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready body, keys in the order the ingestion API documents."""
        utm = dict(self.utm) if self.utm is not None else None
        details = {k: (dict(v) if isinstance(v, MappingProxyType) else v) for k, v in self.details.items()}

        if self.kind is EventKind.FORM_SUBMITTED:
            body: dict[str, Any] = {
                "device_id": self.device_id,
                "url": self.url,
                "referrer": self.referrer,
                "site_domain": self.site_domain,
            }
            raw_fields = details.pop("raw_fields", {})
            body.update(details)
            body["utm"] = utm
            body["user_agent"] = self.user_agent
            body["ip"] = self.ip
            body["ts"] = self.ts
            body["raw_fields"] = raw_fields
            return body

        body = {
            "device_id": self.device_id,
            "url": self.url,
            "referrer": self.referrer,
            "site_domain": self.site_domain,
            "utm": utm,
            "user_agent": self.user_agent,
            "ip": self.ip,
            "ts": self.ts,
        }
        body.update(details)
        return body
