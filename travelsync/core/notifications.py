import logging
from typing import Optional, Protocol

from travelsync.core.erp.client import ErpCallTrace

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def notify_sync_error(
        self,
        *,
        proposal_id: str,
        error: str,
        trace: Optional[ErpCallTrace] = None,
    ) -> None: ...


class LoggingNotificationSink:
    """Publishes sync failures as structured error log records for alert routing."""

    def __init__(self, *, include_trace: bool = False) -> None:
        self._include_trace = include_trace

    def notify_sync_error(
        self,
        *,
        proposal_id: str,
        error: str,
        trace: Optional[ErpCallTrace] = None,
    ) -> None:
        fields: dict[str, object] = {"proposal_id": proposal_id, "error": error}
        if trace is not None:
            fields["erp_method"] = trace.method
            fields["erp_duration_ms"] = trace.duration_ms
            if self._include_trace:
                fields["erp_last_request"] = trace.last_request
                fields["erp_last_response"] = trace.last_response
        logger.error("erp_sync.notification", extra={"extra_fields": fields})
