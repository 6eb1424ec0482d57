"""
Command-line interface for on-demand runs.

Usage:
    # Fetch all enabled sources, then classify new articles
    newsfilter fetch-all

    # Fetch one source
    newsfilter fetch 3

    # Classify unfiltered articles
    newsfilter filter

    # Show recent fetch attempts
    newsfilter log --limit 20

    # Purge articles past the retention window
    newsfilter purge

    # Reset all relevance verdicts
    newsfilter clear-scores
"""
import argparse
import asyncio
import sys
from collections.abc import Awaitable, Callable

from newsfilter.config import get_settings
from newsfilter.core.logging import configure_logging
from newsfilter.errors import ClassifierPreconditionError, FetchRunInProgressError
from newsfilter.repositories import fetch_log as fetch_log_repo
from newsfilter.runtime import Runtime, build_runtime
from newsfilter.services.events import CollectingEventSink
from newsfilter.services.source_sync import sync_sources


async def _run_with_runtime(command: Callable[[Runtime, argparse.Namespace], Awaitable[int]], args) -> int:
    settings = get_settings()
    runtime = build_runtime(settings)
    try:
        await runtime.database.create_tables()
        await sync_sources(runtime.database, settings.sources_file)
        return await command(runtime, args)
    finally:
        await runtime.close()


async def cmd_fetch_all(runtime: Runtime, args) -> int:
    """Fetch every enabled source."""
    if await runtime.orchestrator.count_enabled_sources() == 0:
        print("No enabled sources")
        return 0

    sink = CollectingEventSink()
    try:
        summary = await runtime.orchestrator.run_fetch_all(sink)
    except FetchRunInProgressError as e:
        print(str(e))
        return 1

    print("\n" + "=" * 60)
    print("FETCH RESULTS")
    print("=" * 60)

    for result in summary.results:
        if result.ok:
            print(f"  OK    {result.source_name}: {result.articles_found} found, {result.new_articles} new")
        else:
            print(f"  FAIL  {result.source_name}: {result.error}")

    print("-" * 60)
    print(f"Sources: {summary.total}  Failed: {summary.failed}  New articles: {summary.new_articles}")

    if summary.filter is not None:
        print(f"Filtered: {summary.filter.filtered} in {summary.filter.batches} batches")
        for error in summary.filter.errors:
            print(f"  {error}")

    return 1 if summary.failed else 0


async def cmd_fetch(runtime: Runtime, args) -> int:
    """Fetch a single source."""
    result = await runtime.orchestrator.fetch_source(args.source_id)
    if not result.ok:
        print(f"Fetch failed for source {args.source_id}: {result.error}")
        return 1

    print(f"{result.source_name}: {result.articles_found} found, {result.new_articles} new")
    return 0


async def cmd_filter(runtime: Runtime, args) -> int:
    """Classify unfiltered articles."""
    try:
        summary = await runtime.classifier.filter_articles()
    except ClassifierPreconditionError as e:
        print(f"Filter failed: {e}")
        return 1

    print(f"Filtered {summary.filtered} articles in {summary.batches} batches")
    for error in summary.errors:
        print(f"  {error}")
    return 1 if summary.errors else 0


async def cmd_log(runtime: Runtime, args) -> int:
    """Show recent fetch attempts."""
    async with runtime.database.async_session() as session:
        entries = await fetch_log_repo.list_fetch_logs(session, limit=args.limit)

    for entry in entries:
        line = (
            f"{entry.started_at:%Y-%m-%d %H:%M:%S}  source={entry.source_id}  "
            f"{entry.status.value:<7}  found={entry.articles_found}"
        )
        if entry.error_message:
            line += f"  error={entry.error_message}"
        print(line)
    return 0


async def cmd_purge(runtime: Runtime, args) -> int:
    """Delete articles past the retention window."""
    purged = await runtime.orchestrator.purge_old_articles()
    print(f"Purged {purged} articles")
    return 0


async def cmd_clear_scores(runtime: Runtime, args) -> int:
    """Reset every relevance verdict."""
    cleared = await runtime.classifier.clear_all_scores()
    print(f"Cleared scores on {cleared} articles")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="newsfilter",
        description="newsfilter - fetch, dedup and score articles",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("fetch-all", help="Fetch all enabled sources")

    fetch_parser = subparsers.add_parser("fetch", help="Fetch one source")
    fetch_parser.add_argument("source_id", type=int, help="Source id")

    subparsers.add_parser("filter", help="Classify unfiltered articles")

    log_parser = subparsers.add_parser("log", help="Show recent fetch attempts")
    log_parser.add_argument(
        "--limit", "-l",
        type=int,
        default=50,
        help="Number of entries (default: 50)"
    )

    subparsers.add_parser("purge", help="Delete articles past the retention window")
    subparsers.add_parser("clear-scores", help="Reset all relevance scores")

    return parser


COMMANDS = {
    "fetch-all": cmd_fetch_all,
    "fetch": cmd_fetch,
    "filter": cmd_filter,
    "log": cmd_log,
    "purge": cmd_purge,
    "clear-scores": cmd_clear_scores,
}


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    configure_logging(get_settings().log_level)
    return asyncio.run(_run_with_runtime(COMMANDS[args.command], args))


if __name__ == "__main__":
    sys.exit(main())
