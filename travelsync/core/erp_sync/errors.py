from typing import Optional

from travelsync.core.erp.client import ErpCallTrace
from travelsync.core.erp_sync.models import SyncResult


class ErpSyncError(Exception):
    def __init__(
        self,
        message: str,
        *,
        result: Optional[SyncResult] = None,
        trace: Optional[ErpCallTrace] = None,
    ) -> None:
        super().__init__(message)
        self.result = result
        self.trace = trace


class ErpSyncProposalNotFoundError(ErpSyncError):
    pass
