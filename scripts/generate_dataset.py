"""
Sales Dataset Generator

Generates a synthetic catalog and order history and seeds the local store.

Usage:
    python scripts/generate_dataset.py --orders 20000 --days 730 --reset
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config.logging import configure_logging  # noqa: E402
from src.data.generators import DataGenerator  # noqa: E402
from src.database.connection import close_database, init_database  # noqa: E402
from src.ingestion.seed_db import seed_database  # noqa: E402


async def run(args: argparse.Namespace) -> None:
    generator = DataGenerator(seed=args.seed)
    print(f"📊 Generating {args.products:,} products and {args.orders:,} orders over {args.days} days...")
    data = generator.generate_all(n_products=args.products, n_orders=args.orders, days=args.days)
    print(generator.describe(data["orders"]))

    await init_database(args.database_url)
    try:
        counts = await seed_database(data["products"], data["orders"], reset=args.reset)
    finally:
        await close_database()
    print(f"   ✅ Seeded {counts['products']:,} products and {counts['orders']:,} orders")


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate and load synthetic sales data")
    parser.add_argument("--products", type=int, default=100, help="Catalog size (default: 100)")
    parser.add_argument("--orders", type=int, default=2000, help="Number of orders (default: 2000)")
    parser.add_argument("--days", type=int, default=730, help="History length in days (default: 730)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--reset", action="store_true", help="Drop and recreate the tables first")
    parser.add_argument("--database-url", default=None, help="Override the configured async database URL")
    args = parser.parse_args()

    configure_logging(log_format="text")
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
