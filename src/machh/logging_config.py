# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Log output for the relay and the CLI.

Every module logs through ``logging.getLogger(__name__)``; this routes those
records through structlog. ``machh serve --json-logs`` emits one JSON object
per line, everything else gets the console renderer. The gateway binds
``request_id`` as a contextvar, so it shows up on every line of a request.

Imports nothing from machh, so the CLI can call it before anything else.
"""

from __future__ import annotations

import logging
import sys

import structlog


def configure(*, json_output: bool = False, level: str = "INFO", debug: bool = False) -> None:
    """Install a single stderr handler on the root logger.

    Args:
        json_output: JSON lines instead of console output.
        level: Root level name; unknown names mean INFO.
        debug: Let ``machh.*`` DEBUG records (relayed bodies, upstream
            responses) through even when the root level is higher.
    """
    pre_chain: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    render = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, render],
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # One INFO line per upstream request otherwise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("machh").setLevel(logging.DEBUG if debug else logging.NOTSET)
