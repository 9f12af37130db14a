"""Command-line backfill.

Runs a backfill pass in-process and waits for it to finish.

Usage:
    catalog-sync-backfill --since 2024-06-01T00:00:00Z
    catalog-sync-backfill --limit 100 --dry-run
"""
import argparse
import asyncio
import sys
from typing import List, Optional

from catalog_sync.config.settings import get_settings
from catalog_sync.container import build_container
from catalog_sync.utils.errors import CatalogSyncError
from catalog_sync.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog-sync-backfill",
        description="Classify and sync every product in the shop",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Everything
  catalog-sync-backfill

  # Only products changed since June, preview without writing
  catalog-sync-backfill --since 2024-06-01T00:00:00Z --dry-run
        """,
    )
    parser.add_argument(
        "--since",
        help="Only products updated at/after this ISO timestamp",
    )
    parser.add_argument(
        "--limit",
        type=int,
        help="Maximum number of products to examine",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Classify and log without writing to the shop",
    )
    return parser


async def run_backfill(since: Optional[str], limit: Optional[int], dry_run: bool) -> dict:
    container = build_container()
    try:
        logger.info("backfill_cli_started", since=since, limit=limit, dry_run=dry_run)
        result = await container.backfill.run(
            since=since,
            limit=limit,
            source="backfill-cli",
            dry_run=dry_run,
        )
        logger.info("backfill_cli_complete", **{k: v for k, v in result.items() if k != "failures"})
        for failure in result["failures"]:
            logger.warning("backfill_cli_item_failed", product_id=failure["id"], error=failure["error"])
        return result
    finally:
        await container.aclose()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.limit is not None and args.limit < 1:
        print("--limit must be a positive integer", file=sys.stderr)
        return 2

    configure_logging(get_settings())
    try:
        asyncio.run(run_backfill(args.since, args.limit, args.dry_run))
    except CatalogSyncError as e:
        logger.error("backfill_cli_failed", error=e.message, error_type=type(e).__name__)
        return 1
    except Exception as e:
        logger.exception("backfill_cli_failed", error=str(e), error_type=type(e).__name__)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
