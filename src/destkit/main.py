#!/usr/bin/env python3

# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from destkit.adapters.hubspot import DESTINATION_NAME, UPSERT_CONTACT_ACTION
from destkit.app import build_registry, dispatch_events
from destkit.config import configure_logging
from destkit.domain.ports import InMemoryTransactionContext
from destkit.domain.reconciliation import UpsertSuccess

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from destkit.domain.reconciliation import BatchOutcome


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send analytics events to destinations")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    send = commands.add_parser("send", help="Map events and perform a destination action")
    send.add_argument("events", type=Path, help="JSONL file holding one event per line")
    send.add_argument(
        "--destination",
        default=DESTINATION_NAME,
        help="Destination name (default: %(default)s)",
    )
    send.add_argument(
        "--action",
        default=UPSERT_CONTACT_ACTION,
        help="Action name (default: %(default)s)",
    )
    send.add_argument("--mapping", type=Path, help="JSON file with field mapping overrides")
    send.add_argument(
        "--no-default-mappings",
        action="store_true",
        help="Only resolve fields present in the mapping file",
    )

    commands.add_parser(
        "identifier-types",
        help="List the HubSpot contact properties usable as identifier type",
    )
    return parser.parse_args(list(argv))


def _load_events(path: Path) -> list[dict[str, object]]:
    events: list[dict[str, object]] = []
    with path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                event = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ValueError(f"{path}:{line_number}: invalid JSON ({exc.msg})") from exc
            if not isinstance(event, dict):
                raise ValueError(f"{path}:{line_number}: expected a JSON object")
            events.append(event)
    return events


def _load_mapping(path: Path | None) -> dict[str, object] | None:
    if path is None:
        return None
    mapping = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(mapping, dict):
        raise ValueError(f"{path}: expected a JSON object")
    return mapping


def _print_outcome(outcome: BatchOutcome) -> None:
    for result in outcome:
        if isinstance(result, UpsertSuccess):
            print(f"{result.action}\t{result.identifier}\t{result.remote_id}")
        else:
            print(f"failed\t{result.identifier}\t{result.category}: {result.message}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    events: list[dict[str, object]] = []
    mapping: dict[str, object] | None = None
    try:
        args = _parse_args(argv if argv is not None else sys.argv[1:])
        configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)
        if args.command == "send":
            events = _load_events(args.events)
            mapping = _load_mapping(args.mapping)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    try:
        registry = build_registry()
        if args.command == "identifier-types":
            definition = registry.get(DESTINATION_NAME, UPSERT_CONTACT_ACTION)
            for label, value in definition.dynamic_fields["identifier_type"]():
                print(f"{value}\t{label}")
            return

        outcome = dispatch_events(
            registry,
            destination=args.destination,
            action=args.action,
            events=events,
            mapping=mapping,
            use_default_mappings=not args.no_default_mappings,
            transaction_factory=InMemoryTransactionContext,
        )
    except Exception as exc:  # noqa: BLE001
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    _print_outcome(outcome)
    if outcome.failed:
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    print("\nClosed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
