from contextlib import closing
from datetime import datetime
from importlib.util import find_spec
from typing import Optional

from travelsync.core.erp_sync.models import SyncRecord
from travelsync.infrastructure.postgres_migrations import apply_postgres_migrations

PACKAGE_ITEM_KEY = "package"

_RECORD_COLUMNS = """
    proposal_id,
    version_id,
    item_id,
    external_reservation_id,
    reservation_kind,
    supplier_id,
    nesting_status,
    created_at
"""


class PostgresSyncRecordRepository:
    def __init__(self, *, dsn: str) -> None:
        if not dsn:
            raise RuntimeError("SYNC_RECORD_POSTGRES_DSN_REQUIRED")
        if find_spec("psycopg") is None:
            raise RuntimeError("SYNC_RECORD_POSTGRES_DRIVER_MISSING")
        self._dsn = dsn
        self._init_db()

    def get_by_item(
        self, *, proposal_id: str, version_id: str, item_id: Optional[str]
    ) -> Optional[SyncRecord]:
        query = f"""
            SELECT {_RECORD_COLUMNS}
            FROM erp_sync_records
            WHERE proposal_id = %s AND version_id = %s AND item_key = %s
        """
        with closing(self._connect()) as connection:
            row = connection.execute(
                query, (proposal_id, version_id, _item_key(item_id))
            ).fetchone()
        return _to_record(row)

    def create(self, record: SyncRecord) -> None:
        query = f"""
            INSERT INTO erp_sync_records (item_key, {_RECORD_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (proposal_id, version_id, item_key) DO NOTHING
        """
        with closing(self._connect()) as connection:
            connection.execute(
                query,
                (
                    _item_key(record.item_id),
                    record.proposal_id,
                    record.version_id,
                    record.item_id,
                    record.external_reservation_id,
                    record.reservation_kind,
                    record.supplier_id,
                    record.nesting_status,
                    record.created_at.isoformat(),
                ),
            )
            connection.commit()

    def mark_nested(self, *, proposal_id: str, version_id: str, item_id: Optional[str]) -> None:
        query = """
            UPDATE erp_sync_records
            SET nesting_status = 'nested'
            WHERE proposal_id = %s AND version_id = %s AND item_key = %s
        """
        with closing(self._connect()) as connection:
            connection.execute(query, (proposal_id, version_id, _item_key(item_id)))
            connection.commit()

    def list_for_proposal(self, *, proposal_id: str) -> list[SyncRecord]:
        query = f"""
            SELECT {_RECORD_COLUMNS}
            FROM erp_sync_records
            WHERE proposal_id = %s
            ORDER BY created_at ASC, item_key ASC
        """
        with closing(self._connect()) as connection:
            rows = connection.execute(query, (proposal_id,)).fetchall()
        return [_to_record(row) for row in rows]

    def _connect(self):
        psycopg, dict_row = _import_psycopg()
        return psycopg.connect(self._dsn, row_factory=dict_row)

    def _init_db(self) -> None:
        with closing(self._connect()) as connection:
            apply_postgres_migrations(connection=connection, namespace="travelsync")


def _import_psycopg():
    import psycopg
    from psycopg.rows import dict_row

    return psycopg, dict_row


def _item_key(item_id: Optional[str]) -> str:
    return item_id if item_id is not None else PACKAGE_ITEM_KEY


def _to_record(row) -> Optional[SyncRecord]:
    if row is None:
        return None
    return SyncRecord(
        proposal_id=row["proposal_id"],
        version_id=row["version_id"],
        item_id=row["item_id"],
        external_reservation_id=int(row["external_reservation_id"]),
        reservation_kind=row["reservation_kind"],
        supplier_id=row["supplier_id"],
        nesting_status=row["nesting_status"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )
