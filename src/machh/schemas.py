# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Inbound request models for the relay endpoints.

Values are sanitized while parsing; business checks (URL required, ignored
paths, click type whitelist) run in the endpoint in a fixed order so the
first failing check decides the error message.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import ClickType
from .elements import MAX_LABEL_LEN
from .sanitizer import sanitize_text_field, sanitize_url


class PageviewForm(BaseModel):
    """Fields posted by the collector for ``action=machh_pageview``."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    url: str = Field(default="", description="Page URL (absolute http/https)")
    referrer: str = Field(default="", description="document.referrer, may be empty")

    @field_validator("url", "referrer", mode="before")
    @classmethod
    def _clean_url(cls, v: Any) -> str:
        return sanitize_url(v)


class ClickForm(PageviewForm):
    """Fields posted by the collector for ``action=machh_click``."""

    click_type: str = Field(default="", description="One of the ClickType values")
    click_label: str = Field(default="", description="Visible label, ≤100 chars")
    click_url: str = Field(default="", description="href/target of the clicked element")
    click_element: str = Field(default="", description="Lowercase tag name")

    @field_validator("click_type", "click_url", "click_element", mode="before")
    @classmethod
    def _clean_text(cls, v: Any) -> str:
        return sanitize_text_field(v)

    @field_validator("click_label", mode="before")
    @classmethod
    def _clean_label(cls, v: Any) -> str:
        return sanitize_text_field(v, max_len=MAX_LABEL_LEN)

    @property
    def parsed_type(self) -> ClickType | None:
        # Exact match only: "Phone_Call" is not a valid type on the wire.
        try:
            return ClickType(self.click_type)
        except ValueError:
            return None


class FormWebhookBody(BaseModel):
    """Body of ``POST /forms/{source}``: the plugin callback's arguments."""

    model_config = ConfigDict(extra="forbid")

    args: list[Any] = Field(default_factory=list, description="Native callback arguments, in order")
