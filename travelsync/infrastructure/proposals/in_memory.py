from copy import deepcopy
from datetime import datetime
from threading import Lock
from typing import Optional

from travelsync.core.proposals.models import (
    ErpSyncStatus,
    ProposalEventRecord,
    ProposalItemRecord,
    ProposalRecord,
    ProposalStatus,
    ProposalVersionRecord,
)
from travelsync.core.proposals.repository import EXTERNAL_ID_FIELDS, ProposalRepository


class InMemoryProposalRepository(ProposalRepository):
    def __init__(self) -> None:
        self._lock = Lock()
        self._proposals: dict[str, ProposalRecord] = {}
        self._versions: dict[str, ProposalVersionRecord] = {}
        self._items: dict[str, list[ProposalItemRecord]] = {}
        self._events: dict[str, list[ProposalEventRecord]] = {}

    def create_proposal(self, proposal: ProposalRecord) -> None:
        with self._lock:
            self._proposals[proposal.proposal_id] = deepcopy(proposal)

    def update_proposal(self, proposal: ProposalRecord) -> None:
        with self._lock:
            self._proposals[proposal.proposal_id] = deepcopy(proposal)

    def get_proposal(self, *, proposal_id: str) -> Optional[ProposalRecord]:
        with self._lock:
            proposal = self._proposals.get(proposal_id)
            return deepcopy(proposal) if proposal is not None else None

    def list_proposals(self, *, status: Optional[str], limit: int) -> list[ProposalRecord]:
        with self._lock:
            rows = list(self._proposals.values())
        rows = sorted(rows, key=lambda x: (x.created_at, x.proposal_id), reverse=True)
        if status is not None:
            rows = [row for row in rows if row.status == status]
        return [deepcopy(row) for row in rows[:limit]]

    def create_version(
        self, *, version: ProposalVersionRecord, items: list[ProposalItemRecord]
    ) -> None:
        with self._lock:
            self._versions[version.version_id] = deepcopy(version)
            self._items[version.version_id] = [deepcopy(item) for item in items]

    def get_version(self, *, version_id: str) -> Optional[ProposalVersionRecord]:
        with self._lock:
            version = self._versions.get(version_id)
            return deepcopy(version) if version is not None else None

    def list_versions(self, *, proposal_id: str) -> list[ProposalVersionRecord]:
        with self._lock:
            versions = [v for v in self._versions.values() if v.proposal_id == proposal_id]
        versions.sort(key=lambda x: x.version_no)
        return [deepcopy(version) for version in versions]

    def list_items(self, *, version_id: str) -> list[ProposalItemRecord]:
        with self._lock:
            items = self._items.get(version_id, [])
            return sorted((deepcopy(item) for item in items), key=lambda x: x.position)

    def update_status(
        self, *, proposal_id: str, status: ProposalStatus, updated_at: datetime
    ) -> None:
        with self._lock:
            proposal = self._proposals.get(proposal_id)
            if proposal is None:
                return
            proposal.status = status
            proposal.updated_at = updated_at

    def update_sync_status(
        self,
        *,
        proposal_id: str,
        sync_status: ErpSyncStatus,
        error_message: Optional[str],
        updated_at: datetime,
    ) -> None:
        with self._lock:
            proposal = self._proposals.get(proposal_id)
            if proposal is None:
                return
            proposal.erp_sync_status = sync_status
            proposal.erp_sync_error = error_message
            proposal.erp_sync_updated_at = updated_at
            proposal.updated_at = updated_at

    def update_external_ids(
        self, *, proposal_id: str, ids: dict[str, int], updated_at: datetime
    ) -> None:
        unknown = set(ids) - EXTERNAL_ID_FIELDS
        if unknown:
            raise ValueError(f"UNKNOWN_EXTERNAL_ID_FIELDS:{','.join(sorted(unknown))}")
        with self._lock:
            proposal = self._proposals.get(proposal_id)
            if proposal is None:
                return
            for name, value in ids.items():
                setattr(proposal, name, value)
            proposal.updated_at = updated_at

    def try_mark_sync_pending(
        self, *, proposal_id: str, now: datetime, stale_before: datetime
    ) -> bool:
        with self._lock:
            proposal = self._proposals.get(proposal_id)
            if proposal is None:
                return False
            if (
                proposal.erp_sync_status == "pending"
                and proposal.erp_sync_updated_at is not None
                and proposal.erp_sync_updated_at >= stale_before
            ):
                return False
            proposal.erp_sync_status = "pending"
            proposal.erp_sync_error = None
            proposal.erp_sync_updated_at = now
            proposal.updated_at = now
            return True

    def append_event(self, event: ProposalEventRecord) -> None:
        with self._lock:
            self._events.setdefault(event.proposal_id, []).append(deepcopy(event))

    def list_events(self, *, proposal_id: str) -> list[ProposalEventRecord]:
        with self._lock:
            events = [deepcopy(event) for event in self._events.get(proposal_id, [])]
        return sorted(events, key=lambda x: x.occurred_at)
