#!/usr/bin/env python3
"""
Run the price tracker once from the command line.

Usage:
    python scripts/run_tracker.py            # every active tracked link
    python scripts/run_tracker.py --link 42  # a single link

Exits non-zero when the link list could not be loaded or any link failed.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.db.models import Base, TrackedLink
from src.db.session import AsyncSessionLocal, engine
from src.logging_config import setup_logging
from src.worker.tasks import task_runner


async def run_single(link_id: int) -> int:
    async with AsyncSessionLocal() as db:
        link = await db.get(TrackedLink, link_id)
    if link is None:
        print(f"Tracked link {link_id} not found")
        return 1

    result = await task_runner.tracker.run_one(link)
    if result is None:
        print(f"Link {link_id}: no offer written")
        return 1
    print(f"Link {link_id}: {result.vendor} price {result.price}, in_stock={result.in_stock}")
    return 0


async def run_batch() -> int:
    summary = await task_runner.run_price_tracker()
    if summary is None:
        return 1

    print("\n" + "=" * 60)
    print("Tracker run complete")
    print("=" * 60)
    print(f"  Processed: {summary.processed}")
    print(f"  Succeeded: {summary.succeeded}")
    print(f"  Failed:    {summary.failed}")
    print(f"  Skipped:   {summary.skipped}")
    if summary.error:
        print(f"  Error:     {summary.error}")
    return 1 if summary.error or summary.failed else 0


async def main(link_id: int | None) -> int:
    setup_logging()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await task_runner.initialize()
    try:
        if link_id is not None:
            return await run_single(link_id)
        return await run_batch()
    finally:
        await task_runner.close()
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Refresh offers for tracked links")
    parser.add_argument("--link", type=int, help="Process only this tracked link id")
    args = parser.parse_args()

    sys.exit(asyncio.run(main(args.link)))
