"""
Manual matching trigger — runs a single matching sweep from the command line.

Usage:
    python scripts/run_matching.py

Useful for testing the matching engine without waiting for the Celery beat schedule.
Uses the store configured by STORE_BACKEND / DATABASE_URL.
"""

import asyncio
import json

from p2p_queue.config import settings
from p2p_queue.core.logging import configure_logging
from p2p_queue.tasks.matching_tasks import sweep_pending


async def main():
    """Run a single matching sweep and print the report."""
    configure_logging(settings.LOG_LEVEL)
    print(f"Starting manual matching sweep ({settings.STORE_BACKEND} store)...")
    result = await sweep_pending()

    print("\n=== Matching Sweep Report ===")
    print(json.dumps(result, indent=2, default=str))
    print(f"\nMatches proposed: {result['proposed']}")


if __name__ == "__main__":
    asyncio.run(main())
