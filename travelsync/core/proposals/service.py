from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Optional

from travelsync.core.common.canonical import snapshot_hash
from travelsync.core.erp_sync.errors import ErpSyncError, ErpSyncProposalNotFoundError
from travelsync.core.erp_sync.models import SyncRecordListResponse, SyncResult
from travelsync.core.erp_sync.repository import SyncRecordRepository
from travelsync.core.preflight.errors import PreflightVersionNotFoundError
from travelsync.core.proposals.events import SYSTEM_ACTOR, record_proposal_event
from travelsync.core.proposals.models import (
    ProposalAcceptRequest,
    ProposalCreateRequest,
    ProposalDetailResponse,
    ProposalEventListResponse,
    ProposalItemRecord,
    ProposalListResponse,
    ProposalRecord,
    ProposalStatus,
    ProposalSummary,
    ProposalTransitionRequest,
    ProposalVersionCreateResponse,
    ProposalVersionDetail,
    ProposalVersionRecord,
    ProposalVersionRequest,
)
from travelsync.core.proposals.repository import ProposalRepository
from travelsync.core.snapshots.models import (
    PreflightResult,
    RawSnapshot,
    ResolutionContext,
    SnapshotResolution,
)
from travelsync.core.snapshots.resolver import SnapshotResolver, build_item_row

if TYPE_CHECKING:
    from travelsync.core.erp_sync.orchestrator import ErpSyncOrchestrator
    from travelsync.core.preflight.service import PreflightValidator

logger = logging.getLogger(__name__)

EDITABLE_STATES = {"draft", "sent"}
SYNCABLE_STATES = {"queued", "error", "synced"}
MIN_TRAVELER_NAME_LENGTH = 3
MIN_TRAVELER_DOCUMENT_LENGTH = 6

TRANSITION_MAP: dict[tuple[ProposalStatus, str], ProposalStatus] = {
    ("draft", "REVOKE"): "revoked",
    ("sent", "REVOKE"): "revoked",
    ("draft", "MARK_LOST"): "lost",
    ("sent", "MARK_LOST"): "lost",
}


class ProposalLifecycleError(Exception):
    pass


class ProposalNotFoundError(ProposalLifecycleError):
    pass


class ProposalValidationError(ProposalLifecycleError):
    def __init__(
        self,
        message: str,
        *,
        errors: Optional[list[dict[str, Any]]] = None,
        preflight: Optional[PreflightResult] = None,
    ) -> None:
        super().__init__(message)
        self.errors = errors or []
        self.preflight = preflight


class ProposalStateConflictError(ProposalLifecycleError):
    pass


class PreflightFailedError(ProposalLifecycleError):
    def __init__(self, message: str, *, result: PreflightResult) -> None:
        super().__init__(message)
        self.result = result


class ProposalWorkflowService:
    def __init__(
        self,
        *,
        repository: ProposalRepository,
        sync_record_repository: SyncRecordRepository,
        resolver: SnapshotResolver,
        preflight_validator: PreflightValidator,
        orchestrator: ErpSyncOrchestrator,
        sync_on_public_accept: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._sync_records = sync_record_repository
        self._resolver = resolver
        self._preflight = preflight_validator
        self._orchestrator = orchestrator
        self._sync_on_public_accept = sync_on_public_accept
        self._clock = clock or _utc_now

    def create_proposal(self, *, payload: ProposalCreateRequest) -> ProposalDetailResponse:
        now = self._clock()
        proposal = ProposalRecord(
            proposal_id=f"tp_{uuid.uuid4().hex[:12]}",
            created_by=payload.created_by,
            created_at=now,
            updated_at=now,
            title=payload.title,
            customer_name=payload.customer_name,
            customer_email=payload.customer_email,
            customer_country=_country(payload.customer_country),
            start_date=payload.start_date,
            end_date=payload.end_date,
            pax_total=payload.pax_total,
            currency=payload.currency,
        )
        self._repository.create_proposal(proposal)
        record_proposal_event(
            self._repository,
            proposal_id=proposal.proposal_id,
            event_type="CREATED",
            actor_id=payload.created_by,
            occurred_at=now,
            to_status="draft",
        )
        logger.info(
            "proposal.created",
            extra={"extra_fields": {"proposal_id": proposal.proposal_id}},
        )
        return ProposalDetailResponse(proposal=self._to_summary(proposal))

    def get_proposal(self, *, proposal_id: str) -> ProposalDetailResponse:
        proposal = self._require_proposal(proposal_id)
        current_version = None
        if proposal.current_version_id:
            version = self._repository.get_version(version_id=proposal.current_version_id)
            if version is None:
                raise ProposalNotFoundError("PROPOSAL_VERSION_NOT_FOUND")
            current_version = self._to_version_detail(version)
        return ProposalDetailResponse(
            proposal=self._to_summary(proposal), current_version=current_version
        )

    def list_proposals(self, *, status: Optional[str], limit: int) -> ProposalListResponse:
        rows = self._repository.list_proposals(status=status, limit=limit)
        return ProposalListResponse(items=[self._to_summary(row) for row in rows])

    def get_version(self, *, proposal_id: str, version_id: str) -> ProposalVersionDetail:
        return self._to_version_detail(self._require_version(proposal_id, version_id))

    def resolve_snapshot(
        self, *, snapshot: RawSnapshot, proposal_id: Optional[str] = None
    ) -> SnapshotResolution:
        return self._resolver.resolve(
            snapshot.model_dump(mode="json"),
            context=ResolutionContext(proposal_id=proposal_id),
        )

    def send_version(
        self, *, proposal_id: str, payload: ProposalVersionRequest
    ) -> ProposalVersionCreateResponse:
        proposal = self._require_proposal(proposal_id)
        if proposal.status not in EDITABLE_STATES:
            raise ProposalStateConflictError("PROPOSAL_NOT_EDITABLE")

        version_no = len(self._repository.list_versions(proposal_id=proposal_id)) + 1
        resolution = self._resolver.resolve(
            payload.snapshot.model_dump(mode="json"),
            context=ResolutionContext(proposal_id=proposal_id, version_number=version_no),
        )
        if resolution.errors:
            raise ProposalValidationError(
                "SNAPSHOT_HAS_BLOCKING_ITEMS",
                errors=[error.model_dump() for error in resolution.errors],
                preflight=resolution.preflight,
            )

        now = self._clock()
        snapshot = resolution.snapshot
        totals = snapshot.get("totals") if isinstance(snapshot.get("totals"), dict) else {}
        version_id = f"tpv_{uuid.uuid4().hex[:12]}"
        version = ProposalVersionRecord(
            version_id=version_id,
            proposal_id=proposal_id,
            version_no=version_no,
            public_token=secrets.token_hex(16),
            snapshot_json=snapshot,
            snapshot_hash=snapshot_hash(snapshot),
            totals_sell_price=_to_float(totals.get("totals_sell_price")),
            totals_cost_net=_to_float(totals.get("totals_cost_net")),
            created_by=payload.created_by,
            created_at=now,
        )
        items = [
            ProposalItemRecord(
                item_id=f"tpi_{uuid.uuid4().hex[:12]}",
                position=position,
                **build_item_row(version_id=version_id, item=item),
            )
            for position, item in enumerate(snapshot.get("items") or [])
        ]
        self._repository.create_version(version=version, items=items)

        from_status = proposal.status
        _apply_header(proposal, payload.snapshot)
        proposal.current_version_id = version_id
        proposal.status = "sent"
        proposal.updated_at = now
        self._repository.update_proposal(proposal)
        record_proposal_event(
            self._repository,
            proposal_id=proposal_id,
            event_type="VERSION_SENT",
            actor_id=payload.created_by,
            occurred_at=now,
            version_id=version_id,
            from_status=from_status,
            to_status="sent",
            details={"version_no": version_no, "snapshot_hash": version.snapshot_hash},
        )
        logger.info(
            "proposal.version_sent",
            extra={
                "extra_fields": {
                    "proposal_id": proposal_id,
                    "version_id": version_id,
                    "version_no": version_no,
                    "items": len(items),
                    "warnings": len(resolution.warnings),
                }
            },
        )
        return ProposalVersionCreateResponse(
            proposal=self._to_summary(proposal),
            version=self._to_version_detail(version, items=items),
            preflight=resolution.preflight,
        )

    def accept_version(
        self, *, proposal_id: str, payload: ProposalAcceptRequest
    ) -> ProposalDetailResponse:
        proposal = self._require_proposal(proposal_id)
        version = self._require_version(proposal_id, payload.version_id)

        if proposal.status == "accepted" and proposal.accepted_version_id == version.version_id:
            return self.get_proposal(proposal_id=proposal_id)
        if proposal.status != "sent":
            raise ProposalStateConflictError("PROPOSAL_NOT_ACCEPTABLE")

        full_name = " ".join(payload.full_name.split())
        document = payload.document.strip()
        if payload.accepted_by == "public":
            if not payload.public_token or not secrets.compare_digest(
                payload.public_token, version.public_token
            ):
                raise ProposalValidationError("INVALID_PUBLIC_TOKEN")
            if version.version_id != proposal.current_version_id:
                raise ProposalStateConflictError("VERSION_NOT_CURRENT")
            if len(full_name) < MIN_TRAVELER_NAME_LENGTH:
                raise ProposalValidationError("TRAVELER_FULL_NAME_REQUIRED")
            if len(document) < MIN_TRAVELER_DOCUMENT_LENGTH:
                raise ProposalValidationError("TRAVELER_DOCUMENT_REQUIRED")

        now = self._clock()
        proposal.accepted_version_id = version.version_id
        proposal.accepted_by = payload.accepted_by
        proposal.accepted_at = now
        if full_name:
            proposal.traveler_full_name = full_name
        if document:
            proposal.traveler_document = document
        proposal.status = "accepted"
        proposal.updated_at = now
        self._repository.update_proposal(proposal)
        record_proposal_event(
            self._repository,
            proposal_id=proposal_id,
            event_type="ACCEPTED",
            actor_id=payload.accepted_by,
            occurred_at=now,
            version_id=version.version_id,
            from_status="sent",
            to_status="accepted",
        )
        logger.info(
            "proposal.accepted",
            extra={
                "extra_fields": {
                    "proposal_id": proposal_id,
                    "version_id": version.version_id,
                    "accepted_by": payload.accepted_by,
                }
            },
        )

        if payload.accepted_by == "public" and self._sync_on_public_accept:
            self._queue_and_sync_after_public_accept(proposal_id)
        return self.get_proposal(proposal_id=proposal_id)

    def check_preflight(
        self, *, proposal_id: str, version_id: Optional[str] = None
    ) -> PreflightResult:
        proposal = self._require_proposal(proposal_id)
        target = version_id or proposal.accepted_version_id or proposal.current_version_id
        if not target:
            raise ProposalNotFoundError("PROPOSAL_VERSION_NOT_FOUND")
        self._require_version(proposal_id, target)
        try:
            return self._preflight.check_version(version_id=target)
        except PreflightVersionNotFoundError as exc:
            raise ProposalNotFoundError(str(exc)) from exc

    def queue_for_sync(
        self, *, proposal_id: str, actor_id: str = SYSTEM_ACTOR
    ) -> ProposalDetailResponse:
        proposal = self._require_proposal(proposal_id)
        if proposal.status != "accepted" or not proposal.accepted_version_id:
            raise ProposalStateConflictError("PROPOSAL_NOT_ACCEPTED")

        result = self.check_preflight(
            proposal_id=proposal_id, version_id=proposal.accepted_version_id
        )
        if not result.ok:
            record_proposal_event(
                self._repository,
                proposal_id=proposal_id,
                event_type="PREFLIGHT_BLOCKED",
                actor_id=actor_id,
                occurred_at=self._clock(),
                version_id=proposal.accepted_version_id,
                details={"blocking": [message.code for message in result.blocking]},
            )
            raise PreflightFailedError("PREFLIGHT_BLOCKING", result=result)

        now = self._clock()
        self._repository.update_status(proposal_id=proposal_id, status="queued", updated_at=now)
        record_proposal_event(
            self._repository,
            proposal_id=proposal_id,
            event_type="QUEUED",
            actor_id=actor_id,
            occurred_at=now,
            version_id=proposal.accepted_version_id,
            from_status="accepted",
            to_status="queued",
        )
        logger.info("proposal.queued", extra={"extra_fields": {"proposal_id": proposal_id}})
        return self.get_proposal(proposal_id=proposal_id)

    def sync_proposal(self, *, proposal_id: str) -> SyncResult:
        self._require_syncable(proposal_id)
        try:
            return self._orchestrator.sync_proposal(proposal_id=proposal_id)
        except ErpSyncProposalNotFoundError as exc:
            raise ProposalNotFoundError(str(exc)) from exc

    def retry_sync_proposal(self, *, proposal_id: str) -> SyncResult:
        self._require_syncable(proposal_id)
        try:
            return self._orchestrator.retry_sync_proposal(proposal_id=proposal_id)
        except ErpSyncProposalNotFoundError as exc:
            raise ProposalNotFoundError(str(exc)) from exc

    def transition(
        self, *, proposal_id: str, payload: ProposalTransitionRequest
    ) -> ProposalDetailResponse:
        proposal = self._require_proposal(proposal_id)
        to_status = TRANSITION_MAP.get((proposal.status, payload.event))
        if to_status is None:
            raise ProposalStateConflictError("INVALID_TRANSITION")
        now = self._clock()
        self._repository.update_status(proposal_id=proposal_id, status=to_status, updated_at=now)
        record_proposal_event(
            self._repository,
            proposal_id=proposal_id,
            event_type="REVOKED" if payload.event == "REVOKE" else "MARKED_LOST",
            actor_id=payload.actor_id,
            occurred_at=now,
            version_id=proposal.current_version_id,
            from_status=proposal.status,
            to_status=to_status,
        )
        logger.info(
            "proposal.transitioned",
            extra={
                "extra_fields": {
                    "proposal_id": proposal_id,
                    "event": payload.event,
                    "from_status": proposal.status,
                    "to_status": to_status,
                    "actor_id": payload.actor_id,
                }
            },
        )
        return self.get_proposal(proposal_id=proposal_id)

    def list_sync_records(self, *, proposal_id: str) -> SyncRecordListResponse:
        self._require_proposal(proposal_id)
        return SyncRecordListResponse(
            items=self._sync_records.list_for_proposal(proposal_id=proposal_id)
        )

    def list_events(self, *, proposal_id: str) -> ProposalEventListResponse:
        self._require_proposal(proposal_id)
        return ProposalEventListResponse(
            proposal_id=proposal_id,
            events=self._repository.list_events(proposal_id=proposal_id),
        )

    def _queue_and_sync_after_public_accept(self, proposal_id: str) -> None:
        try:
            self.queue_for_sync(proposal_id=proposal_id)
            self.sync_proposal(proposal_id=proposal_id)
        except PreflightFailedError as exc:
            logger.warning(
                "proposal.auto_sync_skipped",
                extra={
                    "extra_fields": {
                        "proposal_id": proposal_id,
                        "blocking": [message.code for message in exc.result.blocking],
                    }
                },
            )
        except ErpSyncError as exc:
            logger.warning(
                "proposal.auto_sync_failed",
                extra={"extra_fields": {"proposal_id": proposal_id, "error": str(exc)}},
            )

    def _require_syncable(self, proposal_id: str) -> ProposalRecord:
        proposal = self._require_proposal(proposal_id)
        if proposal.status not in SYNCABLE_STATES:
            raise ProposalStateConflictError("PROPOSAL_NOT_QUEUED")
        return proposal

    def _require_proposal(self, proposal_id: str) -> ProposalRecord:
        proposal = self._repository.get_proposal(proposal_id=proposal_id)
        if proposal is None:
            raise ProposalNotFoundError("PROPOSAL_NOT_FOUND")
        return proposal

    def _require_version(self, proposal_id: str, version_id: str) -> ProposalVersionRecord:
        version = self._repository.get_version(version_id=version_id)
        if version is None or version.proposal_id != proposal_id:
            raise ProposalNotFoundError("PROPOSAL_VERSION_NOT_FOUND")
        return version

    def _to_summary(self, proposal: ProposalRecord) -> ProposalSummary:
        return ProposalSummary(
            proposal_id=proposal.proposal_id,
            title=proposal.title,
            customer_name=proposal.customer_name,
            status=proposal.status,
            current_version_id=proposal.current_version_id,
            accepted_version_id=proposal.accepted_version_id,
            erp_sync_status=proposal.erp_sync_status,
            erp_sync_error=proposal.erp_sync_error,
            erp_client_id=proposal.erp_client_id,
            erp_case_id=proposal.erp_case_id,
            erp_package_reservation_id=proposal.erp_package_reservation_id,
            created_at=proposal.created_at.isoformat(),
            updated_at=proposal.updated_at.isoformat(),
        )

    def _to_version_detail(
        self,
        version: ProposalVersionRecord,
        *,
        items: Optional[list[ProposalItemRecord]] = None,
    ) -> ProposalVersionDetail:
        if items is None:
            items = self._repository.list_items(version_id=version.version_id)
        return ProposalVersionDetail(
            version_id=version.version_id,
            proposal_id=version.proposal_id,
            version_no=version.version_no,
            public_token=version.public_token,
            snapshot_hash=version.snapshot_hash,
            created_at=version.created_at.isoformat(),
            created_by=version.created_by,
            totals_sell_price=version.totals_sell_price,
            totals_cost_net=version.totals_cost_net,
            snapshot=version.snapshot_json,
            items=items,
        )


def _apply_header(proposal: ProposalRecord, snapshot: RawSnapshot) -> None:
    header = snapshot.header
    if header.title:
        proposal.title = header.title
    if header.customer_name:
        proposal.customer_name = header.customer_name
    if header.customer_email:
        proposal.customer_email = header.customer_email
    if header.customer_country:
        proposal.customer_country = _country(header.customer_country)
    if header.start_date:
        proposal.start_date = header.start_date
    if header.end_date:
        proposal.end_date = header.end_date
    if header.pax_total:
        proposal.pax_total = header.pax_total
    if header.currency:
        proposal.currency = header.currency


def _country(value: Optional[str]) -> Optional[str]:
    text = (value or "").strip().upper()
    return text or None


def _to_float(value: Any) -> float:
    try:
        return round(float(value), 2)
    except (TypeError, ValueError):
        return 0.0


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
