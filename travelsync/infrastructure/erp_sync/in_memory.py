from copy import deepcopy
from threading import Lock
from typing import Optional

from travelsync.core.erp_sync.models import SyncRecord
from travelsync.core.erp_sync.repository import SyncRecordRepository

_Key = tuple[str, str, Optional[str]]


class InMemorySyncRecordRepository(SyncRecordRepository):
    def __init__(self) -> None:
        self._lock = Lock()
        self._records: dict[_Key, SyncRecord] = {}

    def get_by_item(
        self, *, proposal_id: str, version_id: str, item_id: Optional[str]
    ) -> Optional[SyncRecord]:
        with self._lock:
            record = self._records.get((proposal_id, version_id, item_id))
            return deepcopy(record) if record is not None else None

    def create(self, record: SyncRecord) -> None:
        key = (record.proposal_id, record.version_id, record.item_id)
        with self._lock:
            self._records.setdefault(key, deepcopy(record))

    def mark_nested(self, *, proposal_id: str, version_id: str, item_id: Optional[str]) -> None:
        with self._lock:
            record = self._records.get((proposal_id, version_id, item_id))
            if record is not None:
                record.nesting_status = "nested"

    def list_for_proposal(self, *, proposal_id: str) -> list[SyncRecord]:
        with self._lock:
            rows = [deepcopy(r) for r in self._records.values() if r.proposal_id == proposal_id]
        return sorted(rows, key=lambda x: (x.created_at, x.item_id or ""))
