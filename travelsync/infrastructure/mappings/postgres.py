from contextlib import closing
from datetime import datetime
from importlib.util import find_spec
from typing import Optional

from travelsync.core.mappings.models import SupplierMappingRecord
from travelsync.infrastructure.postgres_migrations import apply_postgres_migrations

_MAPPING_COLUMNS = """
    object_type,
    object_id,
    entity_type,
    entity_id,
    supplier_id,
    supplier_name,
    status,
    match_type,
    updated_at,
    updated_by
"""


class PostgresSupplierMappingRepository:
    def __init__(self, *, dsn: str) -> None:
        if not dsn:
            raise RuntimeError("MAPPING_POSTGRES_DSN_REQUIRED")
        if find_spec("psycopg") is None:
            raise RuntimeError("MAPPING_POSTGRES_DRIVER_MISSING")
        self._dsn = dsn
        self._init_db()

    def get_mapping(self, *, object_type: str, object_id: int) -> Optional[SupplierMappingRecord]:
        query = f"""
            SELECT {_MAPPING_COLUMNS}
            FROM erp_supplier_mappings
            WHERE object_type = %s AND object_id = %s
        """
        with closing(self._connect()) as connection:
            row = connection.execute(query, (object_type, object_id)).fetchone()
        return _to_mapping(row)

    def get_active_mapping(
        self, *, object_type: str, object_id: int
    ) -> Optional[SupplierMappingRecord]:
        query = f"""
            SELECT {_MAPPING_COLUMNS}
            FROM erp_supplier_mappings
            WHERE object_type = %s AND object_id = %s AND status = 'active'
        """
        with closing(self._connect()) as connection:
            row = connection.execute(query, (object_type, object_id)).fetchone()
        return _to_mapping(row)

    def upsert_mapping(self, mapping: SupplierMappingRecord) -> bool:
        query = f"""
            INSERT INTO erp_supplier_mappings ({_MAPPING_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (object_type, object_id) DO UPDATE SET
                entity_type=excluded.entity_type,
                entity_id=excluded.entity_id,
                supplier_id=excluded.supplier_id,
                supplier_name=excluded.supplier_name,
                status=excluded.status,
                match_type=excluded.match_type,
                updated_at=excluded.updated_at,
                updated_by=excluded.updated_by
            RETURNING (xmax = 0) AS inserted
        """
        with closing(self._connect()) as connection:
            row = connection.execute(
                query,
                (
                    mapping.object_type,
                    mapping.object_id,
                    mapping.entity_type,
                    mapping.entity_id,
                    mapping.supplier_id,
                    mapping.supplier_name,
                    mapping.status,
                    mapping.match_type,
                    mapping.updated_at.isoformat(),
                    mapping.updated_by,
                ),
            ).fetchone()
            connection.commit()
        return bool(row["inserted"]) if row is not None else False

    def list_mappings(
        self, *, object_type: Optional[str], status: Optional[str]
    ) -> list[SupplierMappingRecord]:
        where_clauses = []
        args: list[str] = []
        if object_type is not None:
            where_clauses.append("object_type = %s")
            args.append(object_type)
        if status is not None:
            where_clauses.append("status = %s")
            args.append(status)
        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        query = f"""
            SELECT {_MAPPING_COLUMNS}
            FROM erp_supplier_mappings
            {where_sql}
            ORDER BY object_type ASC, object_id ASC
        """
        with closing(self._connect()) as connection:
            rows = connection.execute(query, tuple(args)).fetchall()
        return [_to_mapping(row) for row in rows]

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


def _to_mapping(row) -> Optional[SupplierMappingRecord]:
    if row is None:
        return None
    return SupplierMappingRecord(
        object_type=row["object_type"],
        object_id=int(row["object_id"]),
        entity_type=row["entity_type"],
        entity_id=row["entity_id"],
        supplier_id=row["supplier_id"],
        supplier_name=row["supplier_name"],
        status=row["status"],
        match_type=row["match_type"],
        updated_at=datetime.fromisoformat(row["updated_at"]),
        updated_by=row["updated_by"],
    )
