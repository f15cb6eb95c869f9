from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

MIGRATIONS_ROOT = Path(__file__).with_name("postgres_migrations")
DEFAULT_NAMESPACE = "travelsync"


@dataclass(frozen=True)
class PostgresMigration:
    version: str
    sql_path: Path
    checksum: str

    def read_sql(self) -> str:
        return self.sql_path.read_text(encoding="utf-8")


def apply_postgres_migrations(*, connection: Any, namespace: str = DEFAULT_NAMESPACE) -> list[str]:
    """Applies forward-only SQL migrations under a namespace-scoped advisory lock.

    Returns the versions applied by this call. Already applied versions are verified by
    checksum; an edited migration file aborts with ``POSTGRES_MIGRATION_CHECKSUM_MISMATCH``.
    """
    lock_key = migration_lock_key(namespace=namespace)
    connection.execute("SELECT pg_advisory_lock(%s::bigint)", (lock_key,))
    try:
        return _apply_locked(connection=connection, namespace=namespace)
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.execute("SELECT pg_advisory_unlock(%s::bigint)", (lock_key,))


def load_migrations(*, namespace: str = DEFAULT_NAMESPACE) -> list[PostgresMigration]:
    namespace_path = MIGRATIONS_ROOT / namespace
    if not namespace_path.is_dir():
        raise RuntimeError(f"POSTGRES_MIGRATIONS_NAMESPACE_NOT_FOUND:{namespace}")
    migrations = []
    for sql_path in sorted(namespace_path.glob("*.sql")):
        content = sql_path.read_bytes()
        migrations.append(
            PostgresMigration(
                version=sql_path.stem.split("_", maxsplit=1)[0],
                sql_path=sql_path,
                checksum=hashlib.sha256(content).hexdigest(),
            )
        )
    return migrations


def migration_lock_key(*, namespace: str) -> int:
    digest = hashlib.sha256(f"migrations:{namespace}".encode("utf-8")).digest()[:8]
    return int.from_bytes(digest, byteorder="big", signed=True)


def _apply_locked(*, connection: Any, namespace: str) -> list[str]:
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            namespace TEXT NOT NULL,
            checksum TEXT NOT NULL,
            applied_at TEXT NOT NULL
        )
        """
    )
    applied = _applied_checksums(connection=connection, namespace=namespace)

    newly_applied: list[str] = []
    for migration in load_migrations(namespace=namespace):
        recorded = applied.get(migration.version)
        if recorded is not None:
            if recorded != migration.checksum:
                raise RuntimeError(
                    f"POSTGRES_MIGRATION_CHECKSUM_MISMATCH:{namespace}:{migration.version}"
                )
            continue
        for statement in _split_statements(migration.read_sql()):
            connection.execute(statement)
        connection.execute(
            """
            INSERT INTO schema_migrations (version, namespace, checksum, applied_at)
            VALUES (%s, %s, %s, %s)
            """,
            (
                f"{namespace}:{migration.version}",
                namespace,
                migration.checksum,
                datetime.now(timezone.utc).isoformat(),
            ),
        )
        newly_applied.append(migration.version)
        logger.info(
            "postgres.migration_applied",
            extra={"extra_fields": {"namespace": namespace, "version": migration.version}},
        )
    connection.commit()
    return newly_applied


def _applied_checksums(*, connection: Any, namespace: str) -> dict[str, str]:
    rows = connection.execute(
        """
        SELECT version, checksum
        FROM schema_migrations
        WHERE namespace = %s
        ORDER BY version ASC
        """,
        (namespace,),
    ).fetchall()
    prefix = f"{namespace}:"
    applied: dict[str, str] = {}
    for row in rows:
        stored = str(row["version"])
        version = stored[len(prefix) :] if stored.startswith(prefix) else stored
        applied[version] = str(row["checksum"])
    return applied


def _split_statements(sql: str) -> list[str]:
    return [statement.strip() for statement in sql.split(";") if statement.strip()]
