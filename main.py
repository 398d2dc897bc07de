"""
Main entry point for Newsdesk
"""

import argparse
import asyncio
from typing import Optional

from newsdesk.feed import NewsFeed
from newsdesk.utils.config import Config
from newsdesk.utils.logger import logger, setup_logging


def print_summary(result) -> None:
    print("\nNewsdesk Aggregation Summary:")
    print(f"   Sources processed: {result.sources_processed}")
    print(f"   Sources skipped (not due): {result.sources_skipped}")
    print(f"   Sources failed: {len(result.sources_failed)}")
    for source_id, kind in result.sources_failed.items():
        print(f"      {source_id}: {kind}")
    print(f"   Articles fetched: {result.fetched}")
    print(f"   Articles stored: {result.stored}")
    print(f"   Duplicates: {result.duplicates}")
    print(f"   Rejected: {result.rejected}")
    print(f"   Summaries generated: {result.summaries_generated}")
    print(f"   Elapsed: {result.elapsed_ms}ms")


async def run_once(feed: NewsFeed, force: bool) -> None:
    try:
        result = await feed.run_aggregation(force=force)
        print_summary(result)
    finally:
        await feed.close()


async def run_scheduled(feed: NewsFeed) -> None:
    """Run immediately once, then keep ticking until interrupted"""
    feed.start_scheduler(run_immediately=True)
    logger.info("Starting in scheduler mode")
    try:
        await asyncio.Event().wait()
    finally:
        await feed.close()


def serve(feed: NewsFeed, with_scheduler: bool) -> None:
    import uvicorn

    from newsdesk.web.app import create_app

    app = create_app(feed, run_scheduler=with_scheduler)
    uvicorn.run(app, host=feed.config.web.host, port=feed.config.web.port, log_config=None)


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(
        description="Newsdesk - news aggregation with AI summaries"
    )
    parser.add_argument(
        "--config",
        help="Path to a YAML config file with sources and provider overrides",
    )
    parser.add_argument(
        "--schedule",
        action="store_true",
        help="Run on the aggregation interval (uses SCHEDULER_* settings from .env)",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Serve the HTTP/WebSocket API (combine with --schedule to aggregate in the background)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Fetch every active source regardless of its interval",
    )

    args = parser.parse_args(argv)

    config = Config(args.config)
    setup_logging(config.logging.level, config.logging.file)
    feed = NewsFeed(config)

    if args.serve:
        serve(feed, with_scheduler=args.schedule)
    elif args.schedule:
        try:
            asyncio.run(run_scheduled(feed))
        except KeyboardInterrupt:
            logger.info("Scheduler stopped by user")
    else:
        asyncio.run(run_once(feed, force=args.force))


if __name__ == "__main__":
    main()
