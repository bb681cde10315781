#!/usr/bin/env python3
"""
Session coordinator entry point.

Feeds watcher events into the completion dispatcher and activity tracker.
Events are newline-delimited JSON objects of the form:

    {"event": "session-completed", "payload": {"sessionId": "abc"}}
    {"event": "session-activity", "payload": "abc"}
    {"event": "rescan-progress", "payload": {"provider": "codex", "phase": "scanning", ...}}

Usage:
    # Read events from stdin
    tail -f events.jsonl | uv run python scripts/run_coordinator.py

    # Replay a file against a specific database
    uv run python scripts/run_coordinator.py --events events.jsonl --db sessions.db

    # Debug logging
    uv run python scripts/run_coordinator.py --verbose --events events.jsonl
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, TextIO

from session_coordinator import (
    ActivityTracker,
    CompletionDispatcher,
    CoordinatorConfig,
    EventBus,
    FileContentReader,
    JsonlProcessingLog,
    SqliteSessionLookup,
)

logger = logging.getLogger("session_coordinator.runner")


def parse_event_line(line: str) -> tuple[str, Any] | None:
    """
    Parse one input line into (event_name, payload).

    Returns None for blank or malformed lines.
    """
    line = line.strip()
    if not line:
        return None

    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        logger.warning(f"Skipping non-JSON line: {line[:80]}")
        return None

    if not isinstance(data, dict) or not isinstance(data.get("event"), str):
        logger.warning(f"Skipping line without event name: {line[:80]}")
        return None

    return data["event"], data.get("payload")


async def feed_events(bus: EventBus, stream: TextIO) -> int:
    """Emit every event read from stream. Returns the number emitted."""
    count = 0
    while True:
        line = await asyncio.to_thread(stream.readline)
        if not line:
            break
        parsed = parse_event_line(line)
        if parsed is None:
            continue
        bus.emit(*parsed)
        count += 1
        # Let handlers scheduled by emit() start before the next line
        await asyncio.sleep(0)
    return count


async def run(
    config: CoordinatorConfig,
    stream: TextIO,
) -> dict[str, Any]:
    """Wire the coordinator, consume the stream, and return a summary."""
    bus = EventBus()
    tracker = ActivityTracker(config=config.activity, bus=bus)
    dispatcher = CompletionDispatcher(
        bus,
        lookup=SqliteSessionLookup(config.resolved_database_path()),
        reader=FileContentReader(),
        processor=JsonlProcessingLog(config.resolved_processing_log_path()),
    )

    await tracker.start()
    await dispatcher.start()
    try:
        emitted = await feed_events(bus, stream)
        # Let accepted passes finish while the dispatcher still counts them
        await bus.drain()
    finally:
        await dispatcher.stop()
        await tracker.stop()
        await bus.drain()

    return {
        "events": emitted,
        "dispatcher": dispatcher.stats.to_dict(),
        "active_sessions": tracker.active_session_ids(),
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the session coordinator")
    parser.add_argument("--events", type=Path, help="Read events from file instead of stdin")
    parser.add_argument("--config", type=Path, help="Config file path")
    parser.add_argument("--db", help="Session database path (overrides config)")
    parser.add_argument("--log", help="Processing log path (overrides config)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    config = CoordinatorConfig.load(args.config)
    if args.db:
        config.database_path = args.db
    if args.log:
        config.processing_log_path = args.log

    if args.events:
        with open(args.events) as f:
            summary = asyncio.run(run(config, f))
    else:
        summary = asyncio.run(run(config, sys.stdin))

    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
