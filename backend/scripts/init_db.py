#!/usr/bin/env python3
"""Create every LogiBill table on the configured database.

Examples:
  python backend/scripts/init_db.py
  python backend/scripts/init_db.py --drop
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys

# Add backend/ to path when run as a script.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import db.models  # noqa: F401  (registers tables on Base.metadata)
from db.session import Base, engine


async def init_db(*, drop: bool = False) -> list[str]:
    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    return sorted(Base.metadata.tables)


def main() -> int:
    parser = argparse.ArgumentParser(description="Create database tables")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables first")
    args = parser.parse_args()

    tables = asyncio.run(init_db(drop=args.drop))
    print(json.dumps({"status": "success", "dropped": bool(args.drop), "tables": tables}))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
