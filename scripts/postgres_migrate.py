import argparse
import logging
import os
import sys
from importlib.util import find_spec
from pathlib import Path

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Apply forward-only PostgreSQL migrations for the travelsync stores."
    )
    parser.add_argument(
        "--dsn",
        default=os.getenv("TRAVELSYNC_POSTGRES_DSN", "").strip(),
        help="PostgreSQL DSN (defaults to TRAVELSYNC_POSTGRES_DSN).",
    )
    parser.add_argument(
        "--namespace",
        default="travelsync",
        help="Migration namespace directory.",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="Print the migrations shipped for the namespace and exit.",
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)

    from travelsync.infrastructure.postgres_migrations import (
        apply_postgres_migrations,
        load_migrations,
    )

    if args.list:
        for migration in load_migrations(namespace=args.namespace):
            print(f"{migration.version} {migration.sql_path.name} {migration.checksum[:12]}")
        return 0

    if not args.dsn:
        raise RuntimeError(f"POSTGRES_MIGRATION_DSN_REQUIRED:{args.namespace}")
    if find_spec("psycopg") is None:
        raise RuntimeError("POSTGRES_MIGRATION_DRIVER_MISSING")
    import psycopg
    from psycopg.rows import dict_row

    with psycopg.connect(args.dsn, row_factory=dict_row) as connection:
        applied = apply_postgres_migrations(connection=connection, namespace=args.namespace)
    print(f"Applied {len(applied)} migration(s) for namespace={args.namespace}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
