# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Machh relay server (Starlette).

Endpoints:
    POST /collect          collector events, form-encoded ``action=machh_pageview|machh_click``
    POST /forms/{source}   form plugin callbacks, JSON ``{"args": [...]}``
    GET  /health           liveness

Responses follow the collector's contract ``{"success": bool, "data": {...}}``.
Validation failures are 400s and are never forwarded; ingestion failures
are soft (``{"ok": false, "error": "forwarding_failed"}``) so the page flow
is never interrupted.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from contextlib import suppress
from urllib.parse import urlsplit

from pydantic import ValidationError as PydanticValidationError
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from . import ClassifiedClick, __version__
from .collector.reporter import CLICK_ACTION, PAGEVIEW_ACTION
from .config import RelayConfig
from .context import RequestContext
from .errors import MalformedSubmissionError, ValidationError
from .forms.manager import FormProviderManager
from .gateway import GatewayMiddleware
from .normalizer import EventNormalizer
from .relay import IngestRelay, RelayResult
from .schemas import ClickForm, FormWebhookBody, PageviewForm

logger = logging.getLogger(__name__)


# ── Response helpers ─────────────────────────────────────────────────


def send_json_success(data: dict) -> JSONResponse:
    return JSONResponse({"success": True, "data": data})


def send_json_error(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse({"success": False, "data": {"message": message}}, status_code=status_code)


def _forward_response(result: RelayResult, what: str) -> JSONResponse:
    if not result.ok:
        logger.error("%s forwarding failed: %s", what, result.message or result.error)
        return send_json_success({"ok": False, "error": "forwarding_failed"})
    return send_json_success({"ok": True, "status": result.status_code})


def should_ignore_url(url: str, ignored_paths: tuple[str, ...]) -> bool:
    path = urlsplit(url).path or "/"
    return any(path.startswith(prefix) for prefix in ignored_paths)


# ── App factory ──────────────────────────────────────────────────────


def create_app(
    config: RelayConfig,
    *,
    relay: IngestRelay | None = None,
    manager: FormProviderManager | None = None,
    normalizer: EventNormalizer | None = None,
) -> Starlette:
    """Build the relay ASGI app. Collaborators are injectable for tests."""
    relay = relay or IngestRelay(config)
    normalizer = normalizer or EventNormalizer()
    manager = manager or FormProviderManager.from_config(config, relay, normalizer=normalizer)

    async def _pageview(request: Request, fields: dict) -> JSONResponse:
        form = PageviewForm.model_validate(fields)
        if not form.url:
            raise ValidationError("URL required", field="url")
        if should_ignore_url(form.url, config.ignored_paths):
            return send_json_success({"ok": True, "skipped": "ignored_path"})

        ctx = RequestContext.from_request(request, home_url=config.home_url)
        payload = normalizer.pageview(ctx, form.url, form.referrer)
        result = await run_in_threadpool(relay.send_pageview, payload)
        return _forward_response(result, "Pageview")

    async def _click(request: Request, fields: dict) -> JSONResponse:
        form = ClickForm.model_validate(fields)
        if not form.url:
            raise ValidationError("URL required", field="url")
        if should_ignore_url(form.url, config.ignored_paths):
            return send_json_success({"ok": True, "skipped": "ignored_path"})
        click_type = form.parsed_type
        if click_type is None:
            raise ValidationError("Invalid click_type", field="click_type")

        click = ClassifiedClick(
            click_type=click_type,
            click_label=form.click_label,
            click_url=form.click_url,
            click_element=form.click_element,
        )
        ctx = RequestContext.from_request(request, home_url=config.home_url)
        payload = normalizer.click(ctx, form.url, form.referrer, click)
        result = await run_in_threadpool(relay.send_click, payload)
        return _forward_response(result, "Click")

    async def collect(request: Request) -> JSONResponse:
        if not config.enabled:
            return send_json_error("Tracking disabled")
        form = await request.form()
        fields = {k: v for k, v in form.items() if isinstance(v, str)}
        action = fields.get("action", "")
        handler = {PAGEVIEW_ACTION: _pageview, CLICK_ACTION: _click}.get(action)
        if handler is None:
            return send_json_error("Unknown action")
        try:
            return await handler(request, fields)
        except ValidationError as e:
            logger.debug("Rejected %s: %s (%s)", action, e, e.field)
            return send_json_error(str(e))

    async def form_submitted(request: Request) -> JSONResponse:
        if not config.enabled:
            return send_json_error("Tracking disabled")
        source = request.path_params["source"]
        try:
            body = FormWebhookBody.model_validate(json.loads(await request.body() or b"{}"))
        except (ValueError, PydanticValidationError):
            # pydantic's ValidationError is a ValueError; both mean a bad body
            return send_json_error("Invalid submission body")

        ctx = RequestContext.from_request(request, home_url=config.home_url)
        try:
            outcome = await run_in_threadpool(manager.dispatch, source, ctx, *body.args)
        except MalformedSubmissionError as e:
            logger.warning("Rejected form submission: %s", e)
            return send_json_error("Unknown form source", status_code=404)

        if outcome.skipped:
            return send_json_success({"ok": True, "skipped": outcome.skipped})
        return _forward_response(outcome.result, f"{source} form submission")

    async def health(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "version": __version__,
                "enabled": config.enabled,
                "forms": [p.source for p in manager.available_providers()],
            }
        )

    if not config.has_credentials:
        logger.warning("Client API key not configured; events will not be forwarded")
    manager.log_registered()

    return Starlette(
        debug=config.debug,
        routes=[
            Route("/collect", collect, methods=["POST"]),
            Route("/forms/{source}", form_submitted, methods=["POST"]),
            Route("/health", health, methods=["GET"]),
        ],
        middleware=[Middleware(GatewayMiddleware)],
    )


# ── Entry point ──────────────────────────────────────────────────────


def _parse_server_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI args and env vars for server configuration.

    Returns:
        argparse.Namespace with attributes: host, port, json_logs, debug.
    """
    parser = argparse.ArgumentParser(description="Machh relay server")
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="HTTP server host (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="HTTP server port (default: 8000)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=False,
        help="Emit JSON log lines instead of human-readable output",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Log relayed payloads and responses",
    )
    args, _ = parser.parse_known_args(argv)

    # Env var overrides
    env_host = os.environ.get("MACHH_HOST", "").strip()
    if env_host:
        args.host = env_host

    env_port = os.environ.get("MACHH_PORT", "").strip()
    if env_port:
        with suppress(ValueError):
            args.port = int(env_port)

    env_json = os.environ.get("MACHH_JSON_LOGS", "").strip().lower()
    args.json_logs = args.json_logs or env_json in ("1", "true", "yes")

    return args


def main(argv: list[str] | None = None) -> None:
    """Run the relay under uvicorn."""
    import uvicorn

    from .logging_config import configure

    args = _parse_server_args(argv)
    config = RelayConfig.from_env()
    if args.debug:
        config = config.with_overrides(debug=True)

    configure(json_output=args.json_logs, debug=config.debug)
    logger.info("Machh relay %s forwarding to %s", __version__, config.ingest_base_url)

    app = create_app(config)
    uvicorn.run(app, host=args.host, port=args.port, log_level="info", log_config=None)
