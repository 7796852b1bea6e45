#!/usr/bin/env python3
"""Validate runtime configuration for pre-production/production deploys.

Examples:
  python backend/scripts/validate_runtime_config.py
  python backend/scripts/validate_runtime_config.py --allow-sqlite --pretty
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any

# Add backend/ to path when run as a script.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import Settings, get_settings, is_local_env

DEFAULT_DATABASE_URL = Settings.model_fields["database_url"].default


def _validate_settings(*, allow_sqlite: bool) -> tuple[list[str], dict[str, Any]]:
    settings = get_settings()
    local_env = is_local_env(settings.app_env)
    failures: list[str] = []

    if not local_env:
        if settings.database_url == DEFAULT_DATABASE_URL:
            failures.append("DATABASE_URL must not use the default value outside local/dev/test")
        if settings.database_url.startswith("sqlite") and not allow_sqlite:
            failures.append("DATABASE_URL must not point at SQLite outside local/dev/test")
        if settings.debug:
            failures.append("DEBUG=true is not allowed outside local/dev/test")
        if settings.store_source_files and not settings.upload_dir.strip():
            failures.append("UPLOAD_DIR is required when STORE_SOURCE_FILES=true")
        if any("localhost" in origin for origin in settings.cors_origins):
            failures.append("CORS_ORIGINS must not include localhost outside local/dev/test")

    summary = {
        "status": "success" if not failures else "failed",
        "app_env": settings.app_env,
        "local_env": local_env,
        "allow_sqlite": bool(allow_sqlite),
        "slab_table": settings.slab_table,
        "flat_bracket_boundary": settings.flat_bracket_boundary,
        "outbound_dedup_policy": settings.outbound_dedup_policy,
        "invoice_count_policy": settings.invoice_count_policy,
        "failures": failures,
    }
    return failures, summary


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate deployment runtime config")
    parser.add_argument(
        "--allow-sqlite",
        action="store_true",
        help="Accept a SQLite DATABASE_URL in non-local environments",
    )
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    args = parser.parse_args()

    try:
        failures, summary = _validate_settings(allow_sqlite=bool(args.allow_sqlite))
    except Exception as exc:  # noqa: BLE001
        summary = {
            "status": "failed",
            "error": str(exc),
            "allow_sqlite": bool(args.allow_sqlite),
        }
        failures = [str(exc)]

    if args.pretty:
        print(json.dumps(summary, indent=2, sort_keys=True))
    else:
        print(json.dumps(summary))

    return 0 if not failures else 1


if __name__ == "__main__":
    raise SystemExit(main())
