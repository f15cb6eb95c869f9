from typing import Optional, Protocol

from travelsync.core.erp_sync.models import SyncRecord


class SyncRecordRepository(Protocol):
    def get_by_item(
        self, *, proposal_id: str, version_id: str, item_id: Optional[str]
    ) -> Optional[SyncRecord]: ...

    def create(self, record: SyncRecord) -> None: ...

    def mark_nested(self, *, proposal_id: str, version_id: str, item_id: Optional[str]) -> None: ...

    def list_for_proposal(self, *, proposal_id: str) -> list[SyncRecord]: ...
