"""Repwatch MCP diagnostics CLI."""

from __future__ import annotations

import argparse
import asyncio
import json

from repwatch_mcp.config import RepwatchSettings
from repwatch_mcp.storage import HistoryStore, HistoryUnavailableError
from repwatch_mcp.tracking import TrackingClient, TrackingError


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def load_store(settings: RepwatchSettings) -> HistoryStore:
    return HistoryStore(settings.chroma_persist_path)


def load_client(settings: RepwatchSettings) -> TrackingClient:
    return TrackingClient(settings.tracker_base_url)


async def _probe(client: TrackingClient, settings: RepwatchSettings) -> dict[str, object]:
    await client.health(timeout=settings.health_timeout)
    status = await client.status(timeout=settings.status_timeout)
    return {"base_url": client.base_url, "healthy": True, "reps": status.reps, "feed_url": client.feed_url}


def cmd_probe(args: argparse.Namespace) -> None:
    settings = RepwatchSettings()
    client = load_client(settings)
    try:
        report = asyncio.run(_probe(client, settings))
    except TrackingError as exc:
        print(json.dumps({"base_url": client.base_url, "healthy": False, "reason": exc.reason, "error": str(exc)}))
        raise SystemExit(1)
    print(json.dumps(report, indent=2))


def cmd_history(args: argparse.Namespace) -> None:
    settings = RepwatchSettings()
    store = load_store(settings)
    try:
        entries = store.list_history(
            user_id=args.user_id,
            exercise_id=args.exercise_id,
            limit=args.limit,
        )
    except HistoryUnavailableError as exc:
        print(f"History store unavailable: {exc}")
        raise SystemExit(1)
    if args.json:
        print(json.dumps([entry.to_dict() for entry in entries], indent=2))
    else:
        for entry in entries:
            print(
                f"{entry.completed_at.isoformat()} {entry.exercise_name}: "
                f"{entry.reps} reps in {entry.duration_seconds}s ({entry.calories} kcal)"
            )


def cmd_metrics(args: argparse.Namespace) -> None:
    settings = RepwatchSettings()
    store = load_store(settings)
    try:
        summary = store.summarize(user_id=args.user_id)
    except HistoryUnavailableError as exc:
        print(f"History store unavailable: {exc}")
        raise SystemExit(1)
    print(json.dumps(summary.to_dict(), indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Repwatch MCP diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_probe = sub.add_parser("probe", help="Check tracking service health and current reps")
    p_probe.set_defaults(func=cmd_probe)

    p_history = sub.add_parser("history", help="List saved exercise sessions")
    p_history.add_argument("--user-id")
    p_history.add_argument("--exercise-id")
    p_history.add_argument("--limit", type=positive_int, default=None)
    p_history.add_argument("--json", action="store_true", help="Output JSON")
    p_history.set_defaults(func=cmd_history)

    p_metrics = sub.add_parser("metrics", help="Show session, rep and calorie totals")
    p_metrics.add_argument("--user-id")
    p_metrics.set_defaults(func=cmd_metrics)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
