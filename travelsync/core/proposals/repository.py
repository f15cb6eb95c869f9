from datetime import datetime
from typing import Optional, Protocol

from travelsync.core.proposals.models import (
    ErpSyncStatus,
    ProposalEventRecord,
    ProposalItemRecord,
    ProposalRecord,
    ProposalStatus,
    ProposalVersionRecord,
)

EXTERNAL_ID_FIELDS = frozenset({"erp_client_id", "erp_case_id", "erp_package_reservation_id"})


class ProposalRepository(Protocol):
    def create_proposal(self, proposal: ProposalRecord) -> None: ...

    def update_proposal(self, proposal: ProposalRecord) -> None: ...

    def get_proposal(self, *, proposal_id: str) -> Optional[ProposalRecord]: ...

    def list_proposals(
        self, *, status: Optional[str], limit: int
    ) -> list[ProposalRecord]: ...

    def create_version(
        self, *, version: ProposalVersionRecord, items: list[ProposalItemRecord]
    ) -> None: ...

    def get_version(self, *, version_id: str) -> Optional[ProposalVersionRecord]: ...

    def list_versions(self, *, proposal_id: str) -> list[ProposalVersionRecord]: ...

    def list_items(self, *, version_id: str) -> list[ProposalItemRecord]: ...

    def update_status(
        self, *, proposal_id: str, status: ProposalStatus, updated_at: datetime
    ) -> None: ...

    def update_sync_status(
        self,
        *,
        proposal_id: str,
        sync_status: ErpSyncStatus,
        error_message: Optional[str],
        updated_at: datetime,
    ) -> None: ...

    def update_external_ids(
        self, *, proposal_id: str, ids: dict[str, int], updated_at: datetime
    ) -> None: ...

    def try_mark_sync_pending(
        self, *, proposal_id: str, now: datetime, stale_before: datetime
    ) -> bool: ...

    def append_event(self, event: ProposalEventRecord) -> None: ...

    def list_events(self, *, proposal_id: str) -> list[ProposalEventRecord]: ...
