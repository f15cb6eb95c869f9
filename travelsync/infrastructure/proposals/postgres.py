import json
from contextlib import closing
from datetime import datetime
from importlib.util import find_spec
from typing import Optional

from travelsync.core.proposals.models import (
    ErpSyncStatus,
    ProposalEventRecord,
    ProposalItemRecord,
    ProposalRecord,
    ProposalStatus,
    ProposalVersionRecord,
)
from travelsync.core.proposals.repository import EXTERNAL_ID_FIELDS
from travelsync.infrastructure.postgres_migrations import apply_postgres_migrations

_PROPOSAL_COLUMNS = """
    proposal_id,
    created_by,
    created_at,
    updated_at,
    title,
    customer_name,
    customer_email,
    customer_country,
    traveler_full_name,
    traveler_document,
    start_date,
    end_date,
    pax_total,
    currency,
    status,
    current_version_id,
    accepted_version_id,
    accepted_by,
    accepted_at,
    erp_client_id,
    erp_case_id,
    erp_package_reservation_id,
    erp_sync_status,
    erp_sync_error,
    erp_sync_updated_at
"""

_VERSION_COLUMNS = """
    version_id,
    proposal_id,
    version_no,
    public_token,
    snapshot_json,
    snapshot_hash,
    totals_sell_price,
    totals_cost_net,
    created_by,
    created_at
"""


_EVENT_COLUMNS = """
    event_id,
    proposal_id,
    event_type,
    actor_id,
    occurred_at,
    version_id,
    from_status,
    to_status,
    details_json
"""

class PostgresProposalRepository:
    def __init__(self, *, dsn: str) -> None:
        if not dsn:
            raise RuntimeError("PROPOSAL_POSTGRES_DSN_REQUIRED")
        if find_spec("psycopg") is None:
            raise RuntimeError("PROPOSAL_POSTGRES_DRIVER_MISSING")
        self._dsn = dsn
        self._init_db()

    def create_proposal(self, proposal: ProposalRecord) -> None:
        with closing(self._connect()) as connection:
            self._upsert_proposal(connection=connection, proposal=proposal)
            connection.commit()

    def update_proposal(self, proposal: ProposalRecord) -> None:
        with closing(self._connect()) as connection:
            self._upsert_proposal(connection=connection, proposal=proposal)
            connection.commit()

    def get_proposal(self, *, proposal_id: str) -> Optional[ProposalRecord]:
        query = f"SELECT {_PROPOSAL_COLUMNS} FROM travel_proposals WHERE proposal_id = %s"
        with closing(self._connect()) as connection:
            row = connection.execute(query, (proposal_id,)).fetchone()
        return _to_proposal(row)

    def list_proposals(self, *, status: Optional[str], limit: int) -> list[ProposalRecord]:
        args: list[object] = []
        where_sql = ""
        if status is not None:
            where_sql = "WHERE status = %s"
            args.append(status)
        args.append(limit)
        query = f"""
            SELECT {_PROPOSAL_COLUMNS}
            FROM travel_proposals
            {where_sql}
            ORDER BY created_at DESC, proposal_id DESC
            LIMIT %s
        """
        with closing(self._connect()) as connection:
            rows = connection.execute(query, tuple(args)).fetchall()
        return [_to_proposal(row) for row in rows]

    def create_version(
        self, *, version: ProposalVersionRecord, items: list[ProposalItemRecord]
    ) -> None:
        version_query = f"""
            INSERT INTO travel_proposal_versions ({_VERSION_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """
        item_query = """
            INSERT INTO travel_proposal_items (item_id, version_id, position, item_json)
            VALUES (%s, %s, %s, %s)
        """
        with closing(self._connect()) as connection:
            connection.execute(
                version_query,
                (
                    version.version_id,
                    version.proposal_id,
                    version.version_no,
                    version.public_token,
                    _json_dump(version.snapshot_json),
                    version.snapshot_hash,
                    version.totals_sell_price,
                    version.totals_cost_net,
                    version.created_by,
                    version.created_at.isoformat(),
                ),
            )
            for item in items:
                connection.execute(
                    item_query,
                    (
                        item.item_id,
                        item.version_id,
                        item.position,
                        _json_dump(item.model_dump(mode="json")),
                    ),
                )
            connection.commit()

    def get_version(self, *, version_id: str) -> Optional[ProposalVersionRecord]:
        query = f"SELECT {_VERSION_COLUMNS} FROM travel_proposal_versions WHERE version_id = %s"
        with closing(self._connect()) as connection:
            row = connection.execute(query, (version_id,)).fetchone()
        return _to_version(row)

    def list_versions(self, *, proposal_id: str) -> list[ProposalVersionRecord]:
        query = f"""
            SELECT {_VERSION_COLUMNS}
            FROM travel_proposal_versions
            WHERE proposal_id = %s
            ORDER BY version_no ASC
        """
        with closing(self._connect()) as connection:
            rows = connection.execute(query, (proposal_id,)).fetchall()
        return [_to_version(row) for row in rows]

    def list_items(self, *, version_id: str) -> list[ProposalItemRecord]:
        query = """
            SELECT item_json
            FROM travel_proposal_items
            WHERE version_id = %s
            ORDER BY position ASC
        """
        with closing(self._connect()) as connection:
            rows = connection.execute(query, (version_id,)).fetchall()
        return [ProposalItemRecord.model_validate(json.loads(row["item_json"])) for row in rows]

    def update_status(
        self, *, proposal_id: str, status: ProposalStatus, updated_at: datetime
    ) -> None:
        query = """
            UPDATE travel_proposals
            SET status = %s, updated_at = %s
            WHERE proposal_id = %s
        """
        with closing(self._connect()) as connection:
            connection.execute(query, (status, updated_at.isoformat(), proposal_id))
            connection.commit()

    def update_sync_status(
        self,
        *,
        proposal_id: str,
        sync_status: ErpSyncStatus,
        error_message: Optional[str],
        updated_at: datetime,
    ) -> None:
        query = """
            UPDATE travel_proposals
            SET erp_sync_status = %s,
                erp_sync_error = %s,
                erp_sync_updated_at = %s,
                updated_at = %s
            WHERE proposal_id = %s
        """
        timestamp = updated_at.isoformat()
        with closing(self._connect()) as connection:
            connection.execute(
                query, (sync_status, error_message, timestamp, timestamp, proposal_id)
            )
            connection.commit()

    def update_external_ids(
        self, *, proposal_id: str, ids: dict[str, int], updated_at: datetime
    ) -> None:
        unknown = set(ids) - EXTERNAL_ID_FIELDS
        if unknown:
            raise ValueError(f"UNKNOWN_EXTERNAL_ID_FIELDS:{','.join(sorted(unknown))}")
        if not ids:
            return
        names = sorted(ids)
        assignments = ", ".join(f"{name} = %s" for name in names)
        query = f"UPDATE travel_proposals SET {assignments}, updated_at = %s WHERE proposal_id = %s"
        args = tuple(ids[name] for name in names) + (updated_at.isoformat(), proposal_id)
        with closing(self._connect()) as connection:
            connection.execute(query, args)
            connection.commit()

    def try_mark_sync_pending(
        self, *, proposal_id: str, now: datetime, stale_before: datetime
    ) -> bool:
        query = """
            UPDATE travel_proposals
            SET erp_sync_status = 'pending',
                erp_sync_error = NULL,
                erp_sync_updated_at = %s,
                updated_at = %s
            WHERE proposal_id = %s
              AND NOT (
                erp_sync_status = 'pending'
                AND erp_sync_updated_at IS NOT NULL
                AND erp_sync_updated_at >= %s
              )
            RETURNING proposal_id
        """
        timestamp = now.isoformat()
        with closing(self._connect()) as connection:
            row = connection.execute(
                query, (timestamp, timestamp, proposal_id, stale_before.isoformat())
            ).fetchone()
            connection.commit()
        return row is not None

    def append_event(self, event: ProposalEventRecord) -> None:
        query = f"""
            INSERT INTO travel_proposal_events ({_EVENT_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        """
        with closing(self._connect()) as connection:
            connection.execute(
                query,
                (
                    event.event_id,
                    event.proposal_id,
                    event.event_type,
                    event.actor_id,
                    event.occurred_at.isoformat(),
                    event.version_id,
                    event.from_status,
                    event.to_status,
                    _json_dump(event.details),
                ),
            )
            connection.commit()

    def list_events(self, *, proposal_id: str) -> list[ProposalEventRecord]:
        query = f"""
            SELECT {_EVENT_COLUMNS}
            FROM travel_proposal_events
            WHERE proposal_id = %s
            ORDER BY occurred_at ASC, event_id ASC
        """
        with closing(self._connect()) as connection:
            rows = connection.execute(query, (proposal_id,)).fetchall()
        return [_to_event(row) for row in rows]

    def _connect(self):
        psycopg, dict_row = _import_psycopg()
        return psycopg.connect(self._dsn, row_factory=dict_row)

    def _init_db(self) -> None:
        with closing(self._connect()) as connection:
            apply_postgres_migrations(connection=connection, namespace="travelsync")

    def _upsert_proposal(self, *, connection, proposal: ProposalRecord) -> None:
        query = f"""
            INSERT INTO travel_proposals ({_PROPOSAL_COLUMNS})
            VALUES (
                %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s
            )
            ON CONFLICT (proposal_id) DO UPDATE SET
                updated_at=excluded.updated_at,
                title=excluded.title,
                customer_name=excluded.customer_name,
                customer_email=excluded.customer_email,
                customer_country=excluded.customer_country,
                traveler_full_name=excluded.traveler_full_name,
                traveler_document=excluded.traveler_document,
                start_date=excluded.start_date,
                end_date=excluded.end_date,
                pax_total=excluded.pax_total,
                currency=excluded.currency,
                status=excluded.status,
                current_version_id=excluded.current_version_id,
                accepted_version_id=excluded.accepted_version_id,
                accepted_by=excluded.accepted_by,
                accepted_at=excluded.accepted_at,
                erp_client_id=excluded.erp_client_id,
                erp_case_id=excluded.erp_case_id,
                erp_package_reservation_id=excluded.erp_package_reservation_id,
                erp_sync_status=excluded.erp_sync_status,
                erp_sync_error=excluded.erp_sync_error,
                erp_sync_updated_at=excluded.erp_sync_updated_at
        """
        connection.execute(
            query,
            (
                proposal.proposal_id,
                proposal.created_by,
                proposal.created_at.isoformat(),
                proposal.updated_at.isoformat(),
                proposal.title,
                proposal.customer_name,
                proposal.customer_email,
                proposal.customer_country,
                proposal.traveler_full_name,
                proposal.traveler_document,
                proposal.start_date,
                proposal.end_date,
                proposal.pax_total,
                proposal.currency,
                proposal.status,
                proposal.current_version_id,
                proposal.accepted_version_id,
                proposal.accepted_by,
                _optional_iso(proposal.accepted_at),
                proposal.erp_client_id,
                proposal.erp_case_id,
                proposal.erp_package_reservation_id,
                proposal.erp_sync_status,
                proposal.erp_sync_error,
                _optional_iso(proposal.erp_sync_updated_at),
            ),
        )


def _import_psycopg():
    import psycopg
    from psycopg.rows import dict_row

    return psycopg, dict_row


def _optional_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def _optional_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _json_dump(value: dict) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def _to_proposal(row) -> Optional[ProposalRecord]:
    if row is None:
        return None
    return ProposalRecord(
        proposal_id=row["proposal_id"],
        created_by=row["created_by"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
        title=row["title"],
        customer_name=row["customer_name"],
        customer_email=row["customer_email"],
        customer_country=row["customer_country"],
        traveler_full_name=row["traveler_full_name"],
        traveler_document=row["traveler_document"],
        start_date=row["start_date"],
        end_date=row["end_date"],
        pax_total=int(row["pax_total"]),
        currency=row["currency"],
        status=row["status"],
        current_version_id=row["current_version_id"],
        accepted_version_id=row["accepted_version_id"],
        accepted_by=row["accepted_by"],
        accepted_at=_optional_datetime(row["accepted_at"]),
        erp_client_id=row["erp_client_id"],
        erp_case_id=row["erp_case_id"],
        erp_package_reservation_id=row["erp_package_reservation_id"],
        erp_sync_status=row["erp_sync_status"],
        erp_sync_error=row["erp_sync_error"],
        erp_sync_updated_at=_optional_datetime(row["erp_sync_updated_at"]),
    )


def _to_version(row) -> Optional[ProposalVersionRecord]:
    if row is None:
        return None
    return ProposalVersionRecord(
        version_id=row["version_id"],
        proposal_id=row["proposal_id"],
        version_no=int(row["version_no"]),
        public_token=row["public_token"],
        snapshot_json=json.loads(row["snapshot_json"]),
        snapshot_hash=row["snapshot_hash"],
        totals_sell_price=float(row["totals_sell_price"]),
        totals_cost_net=float(row["totals_cost_net"]),
        created_by=row["created_by"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _to_event(row) -> ProposalEventRecord:
    return ProposalEventRecord(
        event_id=row["event_id"],
        proposal_id=row["proposal_id"],
        event_type=row["event_type"],
        actor_id=row["actor_id"],
        occurred_at=datetime.fromisoformat(row["occurred_at"]),
        version_id=row["version_id"],
        from_status=row["from_status"],
        to_status=row["to_status"],
        details=json.loads(row["details_json"]),
    )
