# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Form provider registry and submission dispatch.

The manager owns the provider list and is the only place that touches the
relay for form events. Ingestion failures are logged and reported as a
:class:`DispatchOutcome`; they never raise into the form plugin's flow.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .. import EventPayload
from ..config import RelayConfig
from ..context import RequestContext
from ..errors import MalformedSubmissionError
from ..normalizer import EventNormalizer
from ..relay import IngestRelay, RelayResult
from .base import FormProvider
from .cf7 import CF7Provider
from .elementor import ElementorProvider
from .metform import MetFormProvider
from .wpforms import WPFormsProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    """What happened to one submission."""

    source: str
    payload: EventPayload | None = None
    result: RelayResult | None = None
    skipped: str = ""

    @property
    def forwarded(self) -> bool:
        return self.result is not None and self.result.ok


class FormProviderManager:
    """Registry of form providers, in registration order."""

    def __init__(self, relay: IngestRelay) -> None:
        self.relay = relay
        self._providers: list[FormProvider] = []

    @classmethod
    def from_config(
        cls,
        config: RelayConfig,
        relay: IngestRelay,
        *,
        normalizer: EventNormalizer | None = None,
        title_lookup: Callable[[Any], str] | None = None,
    ) -> FormProviderManager:
        """All built-in providers; those not in ``config.form_sources`` are unavailable."""
        normalizer = normalizer or EventNormalizer()
        manager = cls(relay)
        enabled = set(config.form_sources)
        for provider in (
            CF7Provider(normalizer, enabled="cf7" in enabled),
            ElementorProvider(normalizer, enabled="elementor" in enabled),
            WPFormsProvider(normalizer, enabled="wpforms" in enabled),
            MetFormProvider(normalizer, enabled="metform" in enabled, title_lookup=title_lookup),
        ):
            manager.add_provider(provider)
        return manager

    def add_provider(self, provider: FormProvider) -> None:
        self._providers.append(provider)

    def get(self, source: str) -> FormProvider | None:
        for provider in self._providers:
            if provider.source == source:
                return provider
        return None

    def available_providers(self) -> list[FormProvider]:
        return [p for p in self._providers if p.is_available()]

    @property
    def provider_count(self) -> int:
        return len(self._providers)

    @property
    def available_provider_count(self) -> int:
        return len(self.available_providers())

    def log_registered(self) -> None:
        for provider in self.available_providers():
            logger.info("Form provider registered: %s", type(provider).__name__)

    def dispatch(self, source: str, ctx: RequestContext, *native_args: Any) -> DispatchOutcome:
        """Normalize and forward one submission from *source*.

        Raises:
            MalformedSubmissionError: If *source* is unknown or unavailable.
        """
        provider = self.get(source)
        if provider is None or not provider.is_available():
            raise MalformedSubmissionError(f"Unknown or disabled form source: {source}", source=source)

        payload = provider.on_submission(ctx, *native_args)
        if payload is None:
            return DispatchOutcome(source=source, skipped="no_fields")

        result = self.relay.send_form_submitted(payload)
        form_id = payload.details.get("form_id")
        if result.ok:
            logger.info("%s form submission forwarded: form_id=%s, status=%d", source, form_id, result.status_code)
        else:
            logger.error("%s form submission forwarding failed: %s", source, result.message or result.error)
        return DispatchOutcome(source=source, payload=payload, result=result)
