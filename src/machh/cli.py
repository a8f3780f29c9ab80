# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Machh CLI: serve, classify, map-form commands.

Usage:
    machh serve [--host HOST] [--port PORT] [--json-logs] [--debug]
    machh classify FILE.html [--format table|json]
    machh map-form SOURCE FILE.json [--format table|json]
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path


def _require_cli_deps() -> None:
    """Check that CLI optional dependencies are installed."""
    try:
        from tabulate import tabulate  # noqa: F401
    except ImportError as e:
        print(
            f"Missing CLI dependency: {e.name}\nInstall with: pip install machh-relay[cli]",
            file=sys.stderr,
        )
        sys.exit(1)


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the relay server, forwarding any extra args to it."""
    from .server import main

    main(argv=getattr(args, "_server_argv", []))


def cmd_classify(args: argparse.Namespace) -> None:
    """Classify every trackable element of an HTML file."""
    from .classifier import ClickClassifier
    from .elements import element_target, is_trackable, iter_descendants, parse_document

    path = Path(args.file)
    root = parse_document(path.read_text(encoding="utf-8"))
    classifier = ClickClassifier()

    rows: list[dict] = []
    for element in iter_descendants(root):
        if not is_trackable(element):
            continue
        click = classifier.classify(element)
        rows.append(
            {
                "element": element.tag,
                "target": element_target(element),
                "type": click.click_type.value if click else "",
                "label": click.click_label if click else "",
            }
        )

    if args.format == "json":
        print(json.dumps(rows, ensure_ascii=False, indent=2))
        return

    _require_cli_deps()
    from tabulate import tabulate

    table = [[r["element"], r["type"] or "-", r["label"], r["target"]] for r in rows]
    print(tabulate(table, headers=["Element", "Type", "Label", "Target"], tablefmt="simple"))
    matched = sum(1 for r in rows if r["type"])
    print(f"\n{matched}/{len(rows)} trackable elements classified")


def cmd_map_form(args: argparse.Namespace) -> None:
    """Run a stored submission (JSON list of callback args) through a provider."""
    from .config import RelayConfig
    from .forms.base import CANONICAL_FIELDS
    from .forms.manager import FormProviderManager
    from .relay import IngestRelay

    config = RelayConfig()
    manager = FormProviderManager.from_config(config, IngestRelay(config))
    provider = manager.get(args.source)
    if provider is None:
        print(f"Unknown form source: {args.source}", file=sys.stderr)
        sys.exit(2)

    native_args = json.loads(Path(args.file).read_text(encoding="utf-8"))
    if not isinstance(native_args, list):
        native_args = [native_args]
    submission = provider.extract(*native_args)
    if submission is None:
        print("No usable submission data", file=sys.stderr)
        sys.exit(1)
    canonical, raw = provider.map(submission)

    if args.format == "json":
        out = {name: getattr(canonical, name) for name in CANONICAL_FIELDS}
        out.update(form_id=submission.form_id, form_name=submission.form_name, raw_fields=raw)
        print(json.dumps(out, ensure_ascii=False, indent=2))
        return

    _require_cli_deps()
    from tabulate import tabulate

    print(f"Form: {submission.form_name or '-'} (id={submission.form_id})\n")
    print(tabulate([[n, getattr(canonical, n)] for n in CANONICAL_FIELDS], headers=["Field", "Value"]))
    print()
    print(tabulate(list(raw.items()), headers=["Raw key", "Value"]))


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Machh relay CLI", prog="machh")
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "serve",
        help="Start the relay server (extra args forwarded to server)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
examples:
  %(prog)s                          Start on 127.0.0.1:8000
  %(prog)s --port 9000 --json-logs  JSON logs on port 9000""",
    )

    p_classify = subparsers.add_parser("classify", help="Classify trackable elements in an HTML file")
    p_classify.add_argument("file", type=str, metavar="FILE", help="HTML file")
    p_classify.add_argument("--format", choices=["table", "json"], default="table")

    p_map = subparsers.add_parser("map-form", help="Map a stored form submission to canonical fields")
    p_map.add_argument("source", choices=["cf7", "elementor", "wpforms", "metform"])
    p_map.add_argument("file", type=str, metavar="FILE", help="JSON array of the plugin callback arguments")
    p_map.add_argument("--format", choices=["table", "json"], default="table")

    commands = {"serve": cmd_serve, "classify": cmd_classify, "map-form": cmd_map_form}

    args, remaining = parser.parse_known_args(argv)

    # Forward remaining args to server when using 'serve' command
    if args.command == "serve":
        args._server_argv = remaining
    else:
        if remaining:
            parser.error(f"unrecognized arguments: {' '.join(remaining)}")
        from .logging_config import configure

        configure(level="DEBUG" if args.verbose else "WARNING")

    try:
        commands[args.command](args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    except SystemExit:
        raise
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc(file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
