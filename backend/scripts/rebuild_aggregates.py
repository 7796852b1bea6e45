#!/usr/bin/env python3
"""Recompute daily summaries and monthly revenue from the fact tables.

Run after changing SLAB_TABLE, FLAT_BRACKET_BOUNDARY or INVOICE_COUNT_POLICY,
or after editing facts outside the upload pipeline.

Examples:
  python backend/scripts/rebuild_aggregates.py
  python backend/scripts/rebuild_aggregates.py --from 2024-10-01 --to 2024-10-31
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from datetime import date

# Add backend/ to path when run as a script.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from db.session import AsyncSessionLocal, engine
from services.aggregation import rebuild_all


async def rebuild(start: date | None, end: date | None) -> dict:
    async with AsyncSessionLocal() as db:
        try:
            counts = await rebuild_all(db, start=start, end=end)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    await engine.dispose()
    return counts


def main() -> int:
    parser = argparse.ArgumentParser(description="Rebuild aggregate tables from facts")
    parser.add_argument("--from", dest="start", type=date.fromisoformat, default=None, help="First day (YYYY-MM-DD)")
    parser.add_argument("--to", dest="end", type=date.fromisoformat, default=None, help="Last day (YYYY-MM-DD)")
    args = parser.parse_args()

    counts = asyncio.run(rebuild(args.start, args.end))
    print(json.dumps({"status": "success", **counts}))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
