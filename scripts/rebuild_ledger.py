"""
Ledger rebuild script.

Replays every (product, location) partition from zero against the configured
database and corrects drifted balances. On PostgreSQL it is safe to run while
the API is serving: each partition is rebuilt under the same advisory lock
online mutations take. On SQLite the partition locks are in-process only, so
stop the API first.

Usage:
    python scripts/rebuild_ledger.py [--concurrency N]
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from inventory_backend.app.core.observability import configure_logging
from inventory_backend.app.db.session import AsyncSessionLocal, engine
from inventory_backend.app.domain.ledger.engine import LedgerEngine


async def rebuild(concurrency: int | None) -> int:
    ledger = LedgerEngine(AsyncSessionLocal)
    try:
        print("🔁 Rebuilding ledger balances...")
        report = await ledger.rebuild_all(concurrency=concurrency)
        print(f"✅ {report.partitions} partitions checked, {report.entries_rewritten} entries corrected")
        return 0
    finally:
        await engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Rebuild all ledger running balances")
    parser.add_argument("--concurrency", type=int, default=None, help="Partitions rebuilt in parallel")
    args = parser.parse_args()

    configure_logging()
    return asyncio.run(rebuild(args.concurrency))


if __name__ == "__main__":
    sys.exit(main())
