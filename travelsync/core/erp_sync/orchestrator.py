import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, NoReturn, Optional

from travelsync.core.common.suppliers import SupplierDefaults
from travelsync.core.erp.client import ErpCallError, ErpCallTrace, ErpClient
from travelsync.core.erp_sync.errors import ErpSyncError, ErpSyncProposalNotFoundError
from travelsync.core.erp_sync.models import SyncRecord, SyncResult
from travelsync.core.erp_sync.payloads import (
    build_case_request,
    build_customer_request,
    build_item_reservation_request,
    build_package_request,
    normalize_document,
)
from travelsync.core.erp_sync.repository import SyncRecordRepository
from travelsync.core.notifications import NotificationSink
from travelsync.core.proposals.events import SYSTEM_ACTOR, record_proposal_event
from travelsync.core.proposals.models import (
    ProposalEventType,
    ProposalItemRecord,
    ProposalRecord,
    ProposalStatus,
    ProposalVersionRecord,
)
from travelsync.core.proposals.repository import ProposalRepository

logger = logging.getLogger(__name__)

DEFAULT_PENDING_TIMEOUT_SECONDS = 300
DEFAULT_PACKAGE_PLANNED_MARGIN_PCT = 20.0


class ErpSyncOrchestrator:
    """Drives the ERP booking sequence for an accepted proposal.

    Steps run in order: customer, case, package container, line reservations. Every id the
    ERP hands back is persisted before the next call, so a later run skips whatever an
    earlier run already completed. A remote failure ends the run with ``erp_sync_status``
    set to ``error``; retrying is a separate call to :meth:`retry_sync_proposal`.
    """

    def __init__(
        self,
        *,
        proposal_repository: ProposalRepository,
        sync_record_repository: SyncRecordRepository,
        erp_client: ErpClient,
        notification_sink: NotificationSink,
        supplier_defaults: SupplierDefaults,
        package_planned_margin_pct: float = DEFAULT_PACKAGE_PLANNED_MARGIN_PCT,
        pending_timeout_seconds: int = DEFAULT_PENDING_TIMEOUT_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._proposals = proposal_repository
        self._records = sync_record_repository
        self._erp = erp_client
        self._notifications = notification_sink
        self._defaults = supplier_defaults
        self._package_planned_margin_pct = package_planned_margin_pct
        self._pending_timeout = timedelta(seconds=pending_timeout_seconds)
        self._clock = clock or _utc_now

    def sync_proposal(self, *, proposal_id: str) -> SyncResult:
        proposal = self._proposals.get_proposal(proposal_id=proposal_id)
        if proposal is None:
            raise ErpSyncProposalNotFoundError("PROPOSAL_NOT_FOUND")

        if proposal.erp_sync_status == "ok" and proposal.erp_case_id:
            return _result(proposal, "ok")

        now = self._clock()
        stale_before = now - self._pending_timeout
        if proposal.erp_sync_status == "pending":
            if not _is_stale(proposal, stale_before):
                logger.info(
                    "erp_sync.pending_in_progress",
                    extra={"extra_fields": {"proposal_id": proposal_id}},
                )
                return _result(proposal, "pending")
            logger.warning(
                "erp_sync.pending_stale",
                extra={
                    "extra_fields": {
                        "proposal_id": proposal_id,
                        "erp_sync_updated_at": _optional_iso(proposal.erp_sync_updated_at),
                    }
                },
            )

        if not self._proposals.try_mark_sync_pending(
            proposal_id=proposal_id, now=now, stale_before=stale_before
        ):
            return _result(proposal, "pending")
        proposal.erp_sync_status = "pending"
        proposal.erp_sync_updated_at = now
        self._record(proposal, "SYNC_STARTED", occurred_at=now)

        version = None
        if proposal.accepted_version_id:
            version = self._proposals.get_version(version_id=proposal.accepted_version_id)
        if version is None:
            self._fail(proposal, "ACCEPTED_VERSION_MISSING")

        try:
            items = self._proposals.list_items(version_id=version.version_id)
            customer_id = self._ensure_customer(proposal)
            case_id = self._ensure_case(proposal, version, customer_id)
            container_id = self._ensure_package(proposal, version, customer_id, case_id)
            created = self._sync_items(
                proposal=proposal,
                version=version,
                items=items,
                customer_id=customer_id,
                case_id=case_id,
                container_id=container_id,
            )
        except ErpCallError as exc:
            self._fail(proposal, str(exc), trace=exc.trace)
        except ValueError as exc:
            self._fail(proposal, str(exc))
        except Exception as exc:
            logger.exception(
                "erp_sync.unexpected_error",
                extra={"extra_fields": {"proposal_id": proposal_id}},
            )
            self._fail(proposal, f"ERP_SYNC_UNEXPECTED_ERROR:{type(exc).__name__}")

        finished_at = self._clock()
        self._proposals.update_sync_status(
            proposal_id=proposal_id,
            sync_status="ok",
            error_message=None,
            updated_at=finished_at,
        )
        self._proposals.update_status(
            proposal_id=proposal_id, status="synced", updated_at=finished_at
        )
        proposal.erp_sync_status = "ok"
        self._record(
            proposal,
            "SYNC_SUCCEEDED",
            occurred_at=finished_at,
            to_status="synced",
            details={"erp_case_id": proposal.erp_case_id, "reservations_created": created},
        )
        logger.info(
            "erp_sync.completed",
            extra={
                "extra_fields": {
                    "proposal_id": proposal_id,
                    "erp_case_id": proposal.erp_case_id,
                    "reservations_created": created,
                }
            },
        )
        result = _result(proposal, "ok")
        result.reservations_created = created
        return result

    def retry_sync_proposal(self, *, proposal_id: str) -> SyncResult:
        logger.info(
            "erp_sync.retry_requested", extra={"extra_fields": {"proposal_id": proposal_id}}
        )
        return self.sync_proposal(proposal_id=proposal_id)

    def _ensure_customer(self, proposal: ProposalRecord) -> int:
        if proposal.erp_client_id:
            return proposal.erp_client_id

        document = normalize_document(proposal.traveler_document)
        customer_id = self._search_customer(document) if document else None
        if customer_id is None:
            try:
                customer_id = self._erp.create_customer(build_customer_request(proposal)).id
            except ErpCallError:
                if not document:
                    raise
                customer_id = self._erp.search_customers(document=document).first_id
                if customer_id is None:
                    raise
        if customer_id is None:
            raise ErpCallError("ERP_CUSTOMER_ID_MISSING", operation="create_customer")

        self._store_ids(proposal, erp_client_id=customer_id)
        return customer_id

    def _search_customer(self, document: str) -> Optional[int]:
        try:
            return self._erp.search_customers(document=document).first_id
        except ErpCallError as exc:
            logger.warning(
                "erp_sync.customer_search_failed",
                extra={"extra_fields": {"operation": exc.operation, "error": str(exc)}},
            )
            return None

    def _ensure_case(
        self, proposal: ProposalRecord, version: ProposalVersionRecord, customer_id: int
    ) -> int:
        if proposal.erp_case_id:
            return proposal.erp_case_id
        request = build_case_request(
            proposal=proposal,
            version=version,
            customer_id=customer_id,
            opened_on=self._clock().date(),
        )
        case_id = self._erp.create_case(request).id
        if case_id is None:
            raise ErpCallError("ERP_CASE_ID_MISSING", operation="create_case")
        self._store_ids(proposal, erp_case_id=case_id)
        return case_id

    def _ensure_package(
        self,
        proposal: ProposalRecord,
        version: ProposalVersionRecord,
        customer_id: int,
        case_id: int,
    ) -> int:
        if proposal.erp_package_reservation_id:
            return proposal.erp_package_reservation_id

        existing = self._records.get_by_item(
            proposal_id=proposal.proposal_id, version_id=version.version_id, item_id=None
        )
        if existing is not None:
            self._store_ids(proposal, erp_package_reservation_id=existing.external_reservation_id)
            return existing.external_reservation_id

        request = build_package_request(
            proposal=proposal,
            version=version,
            customer_id=customer_id,
            case_id=case_id,
            package_supplier_id=self._defaults.package_supplier_id,
            planned_margin_pct=self._package_planned_margin_pct,
        )
        reservation_id = self._erp.create_reservation(request).id
        if reservation_id is None:
            raise ErpCallError("ERP_PACKAGE_RESERVATION_ID_MISSING", operation="create_reservation")
        self._records.create(
            SyncRecord(
                proposal_id=proposal.proposal_id,
                version_id=version.version_id,
                item_id=None,
                external_reservation_id=reservation_id,
                reservation_kind="PQ",
                supplier_id=self._defaults.package_supplier_id,
                nesting_status="not_required",
                created_at=self._clock(),
            )
        )
        self._store_ids(proposal, erp_package_reservation_id=reservation_id)
        return reservation_id

    def _sync_items(
        self,
        *,
        proposal: ProposalRecord,
        version: ProposalVersionRecord,
        items: list[ProposalItemRecord],
        customer_id: int,
        case_id: int,
        container_id: Optional[int],
    ) -> int:
        created = 0
        for item in items:
            record = self._records.get_by_item(
                proposal_id=proposal.proposal_id,
                version_id=version.version_id,
                item_id=item.item_id,
            )
            if record is not None and record.nesting_status != "pending":
                continue

            if record is None:
                request = build_item_reservation_request(
                    proposal=proposal,
                    version=version,
                    item=item,
                    customer_id=customer_id,
                    case_id=case_id,
                    container_reservation_id=container_id,
                    fallback_supplier_id=self._defaults.supplier_id,
                )
                reservation_id = self._erp.create_reservation(request).id
                if reservation_id is None:
                    raise ErpCallError("ERP_RESERVATION_ID_MISSING", operation="create_reservation")
                record = SyncRecord(
                    proposal_id=proposal.proposal_id,
                    version_id=version.version_id,
                    item_id=item.item_id,
                    external_reservation_id=reservation_id,
                    reservation_kind=request.kind,
                    supplier_id=str(request.supplier_id),
                    nesting_status="pending" if container_id else "not_required",
                    created_at=self._clock(),
                )
                self._records.create(record)
                created += 1

            if container_id and record.nesting_status == "pending":
                nesting = self._erp.set_reservation_nesting(
                    reservation_id=record.external_reservation_id,
                    container_reservation_id=container_id,
                )
                if not nesting.ok:
                    raise ErpCallError("ERP_NESTING_REJECTED", operation="set_reservation_nesting")
                self._records.mark_nested(
                    proposal_id=proposal.proposal_id,
                    version_id=version.version_id,
                    item_id=item.item_id,
                )
            logger.info(
                "erp_sync.item_synced",
                extra={
                    "extra_fields": {
                        "proposal_id": proposal.proposal_id,
                        "item_id": item.item_id,
                        "reservation_id": record.external_reservation_id,
                    }
                },
            )
        return created

    def _store_ids(self, proposal: ProposalRecord, **ids: int) -> None:
        self._proposals.update_external_ids(
            proposal_id=proposal.proposal_id, ids=ids, updated_at=self._clock()
        )
        for name, value in ids.items():
            setattr(proposal, name, value)
        logger.info(
            "erp_sync.ids_stored",
            extra={"extra_fields": {"proposal_id": proposal.proposal_id, **ids}},
        )

    def _fail(
        self,
        proposal: ProposalRecord,
        message: str,
        *,
        trace: Optional[ErpCallTrace] = None,
    ) -> NoReturn:
        failed_at = self._clock()
        self._proposals.update_sync_status(
            proposal_id=proposal.proposal_id,
            sync_status="error",
            error_message=message,
            updated_at=failed_at,
        )
        self._proposals.update_status(
            proposal_id=proposal.proposal_id, status="error", updated_at=failed_at
        )
        proposal.erp_sync_status = "error"
        proposal.erp_sync_error = message
        logger.error(
            "erp_sync.failed",
            extra={"extra_fields": {"proposal_id": proposal.proposal_id, "error": message}},
        )
        self._record(
            proposal,
            "SYNC_FAILED",
            occurred_at=failed_at,
            to_status="error",
            details={"error": message},
        )
        self._notify_failure(proposal, message, trace)
        raise ErpSyncError(message, result=_result(proposal, "error"), trace=trace)

    def _notify_failure(
        self, proposal: ProposalRecord, message: str, trace: Optional[ErpCallTrace]
    ) -> None:
        try:
            self._notifications.notify_sync_error(
                proposal_id=proposal.proposal_id, error=message, trace=trace
            )
        except Exception:
            logger.exception(
                "erp_sync.notification_failed",
                extra={"extra_fields": {"proposal_id": proposal.proposal_id}},
            )

    def _record(
        self,
        proposal: ProposalRecord,
        event_type: ProposalEventType,
        *,
        occurred_at: datetime,
        to_status: Optional[ProposalStatus] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        record_proposal_event(
            self._proposals,
            proposal_id=proposal.proposal_id,
            event_type=event_type,
            actor_id=SYSTEM_ACTOR,
            occurred_at=occurred_at,
            version_id=proposal.accepted_version_id,
            from_status=proposal.status if to_status else None,
            to_status=to_status,
            details=details,
        )


def _result(proposal: ProposalRecord, status: str) -> SyncResult:
    return SyncResult(
        proposal_id=proposal.proposal_id,
        status=status,
        erp_client_id=proposal.erp_client_id,
        erp_case_id=proposal.erp_case_id,
        erp_package_reservation_id=proposal.erp_package_reservation_id,
        error=proposal.erp_sync_error if status == "error" else None,
    )


def _is_stale(proposal: ProposalRecord, stale_before: datetime) -> bool:
    if proposal.erp_sync_updated_at is None:
        return True
    return proposal.erp_sync_updated_at < stale_before


def _optional_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
