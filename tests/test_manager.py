# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for machh.forms.manager — provider registry and dispatch."""

from __future__ import annotations

import logging

import httpx
import pytest

from machh.config import RelayConfig
from machh.errors import MalformedSubmissionError
from machh.forms import CF7Provider, FormProviderManager
from machh.relay import CONFIG_MISSING, IngestRelay

CF7_ARGS = ({"id": 7, "title": "Contact"}, {"your-email": "jean@site.fr", "your-name": "Jean"})


@pytest.fixture
def manager(relay_config, relay) -> FormProviderManager:
    return FormProviderManager.from_config(relay_config, relay)


class TestRegistry:
    def test_all_builtin_providers(self, manager):
        assert manager.provider_count == 4
        assert [p.source for p in manager.available_providers()] == ["cf7", "elementor", "wpforms", "metform"]

    def test_form_sources_limit_availability(self, relay_config, relay):
        config = relay_config.with_overrides(form_sources=("cf7", "WPForms"))
        manager = FormProviderManager.from_config(config, relay)
        assert manager.provider_count == 4
        assert manager.available_provider_count == 2
        assert not manager.get("elementor").is_available()

    def test_get_unknown(self, manager):
        assert manager.get("gravity") is None

    def test_log_registered(self, manager, caplog):
        with caplog.at_level(logging.INFO, logger="machh.forms.manager"):
            manager.log_registered()
        assert "CF7Provider" in caplog.text
        assert "MetFormProvider" in caplog.text

    def test_add_provider(self, relay):
        manager = FormProviderManager(relay)
        manager.add_provider(CF7Provider())
        assert manager.get("cf7") is not None


class TestDispatch:
    def test_forwarded(self, manager, ingest_handler, request_ctx):
        outcome = manager.dispatch("cf7", request_ctx, *CF7_ARGS)
        assert outcome.forwarded
        assert outcome.skipped == ""
        assert outcome.payload.details["form_id"] == 7
        assert str(ingest_handler.requests[0].url).endswith("/ingest/form-submitted")
        assert ingest_handler.last_json["email"] == "jean@site.fr"

    def test_malformed_skipped_without_request(self, manager, ingest_handler, request_ctx):
        outcome = manager.dispatch("cf7", request_ctx, {"id": 7}, None)
        assert outcome.skipped == "no_fields"
        assert not outcome.forwarded
        assert ingest_handler.requests == []

    def test_unknown_source(self, manager, request_ctx):
        with pytest.raises(MalformedSubmissionError) as exc_info:
            manager.dispatch("gravity", request_ctx)
        assert exc_info.value.source == "gravity"

    def test_disabled_source(self, relay_config, relay, request_ctx):
        manager = FormProviderManager.from_config(relay_config.with_overrides(form_sources=("cf7",)), relay)
        with pytest.raises(MalformedSubmissionError):
            manager.dispatch("metform", request_ctx, 1, {"mf-email": "a@b.fr"})

    def test_forwarding_failure_logged(self, ingest_handler, request_ctx, caplog):
        relay = IngestRelay(RelayConfig(client_key=""), transport=httpx.MockTransport(ingest_handler))
        manager = FormProviderManager.from_config(relay.config, relay)
        with caplog.at_level(logging.ERROR, logger="machh.forms.manager"):
            outcome = manager.dispatch("cf7", request_ctx, *CF7_ARGS)
        assert outcome.result.error == CONFIG_MISSING
        assert not outcome.forwarded
        assert "forwarding failed" in caplog.text
