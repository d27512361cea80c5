#!/usr/bin/env python3
"""
Replay decoded contract events into the indexer store.

Reads one JSON event per line (each carrying a ``kind`` field plus the
event arguments and block/transaction fields), reduces them in file order
through the bounded pipeline and prints a summary with the top brands cache.

Usage:
    python scripts/replay_events.py events.jsonl
    python scripts/replay_events.py events.jsonl --db-type memory
    python scripts/replay_events.py events.jsonl --db-path ./data/replay.duckdb
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from indexer.config import get_settings
from indexer.engine import EventPipeline, EventReducer, PipelineHaltedError
from indexer.models import ChainEvent, TopBrand, parse_event
from indexer.storage import DuckDBStorage, MemoryStorage, StorageBackend
from indexer.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def read_events(path: Path) -> Iterator[ChainEvent]:
    """
    Parse a JSON-lines file into events.

    Raises:
        ValueError: If a line is not valid JSON or not a known event
    """
    with path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield parse_event(json.loads(line))
            except (json.JSONDecodeError, ValidationError) as e:
                raise ValueError(f"{path}:{line_number}: invalid event: {e}") from e


def build_storage(db_type: str, db_path: str, threads: int) -> StorageBackend:
    if db_type == "memory":
        return MemoryStorage()
    return DuckDBStorage(db_path=db_path, threads=threads)


def print_summary(reducer: EventReducer, storage: StorageBackend) -> None:
    stats = reducer.stats
    print("\n" + "=" * 60)
    print("REPLAY SUMMARY")
    print("=" * 60)
    print(f"Applied:          {stats['applied']:>8}")
    print(f"Duplicates:       {stats['duplicates']:>8}")
    print(f"Skipped updates:  {stats['skipped_updates']:>8}")
    print(f"Warnings:         {stats['warnings']:>8}")
    print(f"{'-' * 60}")
    for kind, count in sorted(reducer.kind_counts.items()):
        print(f"  {kind:<22} {count:>8}")

    print("\n" + "=" * 60)
    print("TOP BRANDS")
    print("=" * 60)
    for entry in storage.list_all(TopBrand):
        period = entry.period_value if entry.period_value is not None else "-"
        print(
            f"  {entry.id:<12} brand={entry.brand_id:<6} points={entry.points:<20} "
            f"votes={entry.total_votes:<6} period={period}"
        )
    print("=" * 60)


def main():
    """Main entry point for event replay."""
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Replay contract events into the podium indexer store")
    parser.add_argument("events", type=Path, help="JSON-lines file of decoded events")
    parser.add_argument(
        "--db-type",
        choices=["duckdb", "memory"],
        default=settings.db_type,
        help="Storage backend (default: from settings)",
    )
    parser.add_argument(
        "--db-path",
        type=str,
        default=settings.db_path,
        help="DuckDB file path (default: from settings)",
    )
    parser.add_argument(
        "--queue-size",
        type=int,
        default=settings.pipeline_queue_size,
        help="Max events buffered ahead of the reducer",
    )
    args = parser.parse_args()

    configure_logging()

    if not args.events.exists():
        print(f"Event file not found: {args.events}")
        sys.exit(1)

    storage = build_storage(args.db_type, args.db_path, settings.db_threads)
    reducer = EventReducer(storage, settings)
    pipeline = EventPipeline(reducer, maxsize=args.queue_size)

    logger.info("replay_started", events=str(args.events), db_type=args.db_type)
    try:
        pipeline.run(read_events(args.events))
    except ValueError as e:
        logger.error("replay_input_invalid", error=str(e))
        print(f"Replay stopped: {e}")
        sys.exit(1)
    except PipelineHaltedError as e:
        logger.error("replay_halted", error=str(e))
        print_summary(reducer, storage)
        print(f"Replay halted: {e}")
        sys.exit(1)

    logger.info("replay_completed", applied=reducer.stats["applied"])
    print_summary(reducer, storage)


if __name__ == "__main__":
    main()
