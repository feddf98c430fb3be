"""
Metrics Cache Warmer

Pre-computes the cacheable dashboard periods so the first page load of the
day hits the cache. Meant to run from cron or a scheduler after each order
sync.

Usage:
    python scripts/warm_cache.py
    python scripts/warm_cache.py --periods 1 7 30 --channels all EBAY AMAZON
    python scripts/warm_cache.py --clear
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog  # noqa: E402

from src.config import get_settings  # noqa: E402
from src.config.logging import configure_logging  # noqa: E402
from src.database.connection import close_database, get_db, init_database  # noqa: E402
from src.metrics.service import MetricsService  # noqa: E402
from src.serving.cache import close_redis, init_redis  # noqa: E402

logger = structlog.get_logger("warm_cache")


async def run(args: argparse.Namespace) -> dict:
    await init_database()
    await init_redis()
    try:
        async with get_db() as session:
            service = MetricsService(session)
            if args.clear:
                deleted = await service.invalidate()
                logger.info("Cache cleared before warming", deleted=deleted)

            channels = args.channels
            if channels == ["*"]:
                channels = ["all"] + await service.available_channels()

            return await service.warm(periods=args.periods, channels=channels)
    finally:
        await close_redis()
        await close_database()


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Warm the metrics cache")
    parser.add_argument(
        "--periods",
        nargs="+",
        default=settings.metrics.warm_periods,
        help=f"Periods to warm (default: {' '.join(settings.metrics.warm_periods)})",
    )
    parser.add_argument(
        "--channels",
        nargs="+",
        default=["all"],
        help="Channels to warm; '*' warms 'all' plus every known channel",
    )
    parser.add_argument("--clear", action="store_true", help="Invalidate the namespace first")
    args = parser.parse_args()

    configure_logging()
    result = asyncio.run(run(args))
    print(f"🔥 Warmed {result['entries']} entries for periods {', '.join(result['periods'])}")


if __name__ == "__main__":
    main()
