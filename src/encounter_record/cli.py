"""Inspect persisted encounter records from the command line.

Run with: encounter-record narrative 42 --style timeline
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from .config import get_config
from .models.sync import ResumeOutcome
from .narrative import NarrativeStyle, allowed_verbs_from_access
from .protocols import RecordStore
from .sync import create_store, resume_or_create


async def _export(store: RecordStore, args: argparse.Namespace) -> int:
    resumed = await resume_or_create(store, args.session_id)
    if resumed.outcome is not ResumeOutcome.RESUMED:
        print(f"No usable record for session {args.session_id} ({resumed.outcome.value})", file=sys.stderr)
        return 1
    print(resumed.ledger.to_json())
    return 0


async def _narrative(store: RecordStore, args: argparse.Namespace) -> int:
    resumed = await resume_or_create(store, args.session_id)
    if resumed.outcome is not ResumeOutcome.RESUMED:
        print(f"No usable record for session {args.session_id} ({resumed.outcome.value})", file=sys.stderr)
        return 1
    ledger = resumed.ledger
    if args.access is not None:
        print(ledger.filtered_narrative(args.style, allowed_verbs_from_access(args.access)))
    elif args.verbs:
        print(ledger.filtered_narrative(args.style, args.verbs.split(",")))
    else:
        print(ledger.to_narrative(args.style))
    return 0


async def _events(store: RecordStore, args: argparse.Namespace) -> int:
    events = await store.load_events(args.session_id, args.verb)
    print(json.dumps(events, indent=2))
    return 0


async def _delete(store: RecordStore, args: argparse.Namespace) -> int:
    deleted = await store.delete(args.session_id)
    print("deleted" if deleted else "not found")
    return 0 if deleted else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="encounter-record", description=__doc__.splitlines()[0])
    sub = parser.add_subparsers(dest="command", required=True)

    export = sub.add_parser("export", help="Print the full record as JSON")
    export.add_argument("session_id")
    export.set_defaults(handler=_export)

    narrative = sub.add_parser("narrative", help="Print a narrative of the record")
    narrative.add_argument("session_id")
    narrative.add_argument(
        "--style",
        choices=[style.value for style in NarrativeStyle],
        default=NarrativeStyle.CONTEXT.value,
    )
    group = narrative.add_mutually_exclusive_group()
    group.add_argument("--verbs", help="Comma-separated verb allow-list")
    group.add_argument("--access", help='Memory access JSON, e.g. \'{"OBTAINED": true}\'')
    narrative.set_defaults(handler=_narrative)

    events = sub.add_parser("events", help="Print stored events")
    events.add_argument("session_id")
    events.add_argument("--verb")
    events.set_defaults(handler=_events)

    delete = sub.add_parser("delete", help="Delete a stored record")
    delete.add_argument("session_id")
    delete.set_defaults(handler=_delete)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the encounter-record command."""
    args = build_parser().parse_args(argv)
    store = create_store(get_config())
    return asyncio.run(args.handler(store, args))


if __name__ == "__main__":
    sys.exit(main())
