from travelsync.core.erp_sync.errors import ErpSyncError, ErpSyncProposalNotFoundError
from travelsync.core.erp_sync.models import SyncRecord, SyncRecordListResponse, SyncResult
from travelsync.core.erp_sync.orchestrator import ErpSyncOrchestrator
from travelsync.core.erp_sync.repository import SyncRecordRepository

__all__ = [
    "ErpSyncError",
    "ErpSyncOrchestrator",
    "ErpSyncProposalNotFoundError",
    "SyncRecord",
    "SyncRecordListResponse",
    "SyncRecordRepository",
    "SyncResult",
]
