from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, status

from travelsync.api.routers.http_errors import raise_proposal_http_exception
from travelsync.api.routers.runtime import get_proposal_workflow_service
from travelsync.core.erp_sync import ErpSyncError, SyncRecordListResponse, SyncResult
from travelsync.core.proposals import (
    ProposalAcceptRequest,
    ProposalCreateRequest,
    ProposalDetailResponse,
    ProposalEventListResponse,
    ProposalLifecycleError,
    ProposalListResponse,
    ProposalTransitionRequest,
    ProposalVersionCreateResponse,
    ProposalVersionDetail,
    ProposalVersionRequest,
    ProposalWorkflowService,
)
from travelsync.core.snapshots import PreflightResult, RawSnapshot, SnapshotResolution

router = APIRouter(tags=["Travel Proposals"])

ProposalId = Annotated[
    str,
    Path(description="Proposal identifier.", examples=["tp_1a2b3c4d5e6f"]),
]
Service = Annotated[ProposalWorkflowService, Depends(get_proposal_workflow_service)]


@router.post(
    "/proposals",
    response_model=ProposalDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Draft Proposal",
    description="Creates a draft proposal header. Versions are added with the send operation.",
)
def create_proposal(payload: ProposalCreateRequest, service: Service) -> ProposalDetailResponse:
    return service.create_proposal(payload=payload)


@router.get(
    "/proposals",
    response_model=ProposalListResponse,
    status_code=status.HTTP_200_OK,
    summary="List Proposals",
    description="Lists proposals, newest first, optionally filtered by status.",
)
def list_proposals(
    service: Service,
    proposal_status: Annotated[
        Optional[str],
        Query(alias="status", description="Proposal status filter.", examples=["queued"]),
    ] = None,
    limit: Annotated[int, Query(ge=1, le=200, description="Maximum rows.")] = 50,
) -> ProposalListResponse:
    return service.list_proposals(status=proposal_status, limit=limit)


@router.get(
    "/proposals/{proposal_id}",
    response_model=ProposalDetailResponse,
    status_code=status.HTTP_200_OK,
    summary="Get Proposal",
    description="Returns the proposal summary and its current version with item rows.",
)
def get_proposal(proposal_id: ProposalId, service: Service) -> ProposalDetailResponse:
    try:
        return service.get_proposal(proposal_id=proposal_id)
    except ProposalLifecycleError as exc:
        raise_proposal_http_exception(exc)


@router.post(
    "/proposals/{proposal_id}/versions",
    response_model=ProposalVersionCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send Proposal Version",
    description=(
        "Resolves the snapshot, persists it as an immutable version with a public token and "
        "marks the proposal sent. Snapshots with blocking diagnostics are rejected with 422."
    ),
)
def send_version(
    proposal_id: ProposalId, payload: ProposalVersionRequest, service: Service
) -> ProposalVersionCreateResponse:
    try:
        return service.send_version(proposal_id=proposal_id, payload=payload)
    except ProposalLifecycleError as exc:
        raise_proposal_http_exception(exc)


@router.get(
    "/proposals/{proposal_id}/versions/{version_id}",
    response_model=ProposalVersionDetail,
    status_code=status.HTTP_200_OK,
    summary="Get Proposal Version",
)
def get_version(
    proposal_id: ProposalId,
    version_id: Annotated[str, Path(description="Version identifier.")],
    service: Service,
) -> ProposalVersionDetail:
    try:
        return service.get_version(proposal_id=proposal_id, version_id=version_id)
    except ProposalLifecycleError as exc:
        raise_proposal_http_exception(exc)


@router.post(
    "/proposals/{proposal_id}/accept",
    response_model=ProposalDetailResponse,
    status_code=status.HTTP_200_OK,
    summary="Accept Proposal Version",
    description=(
        "Records acceptance by an admin or by the customer through the public link. Public "
        "acceptance requires the version token and traveler identity."
    ),
)
def accept_version(
    proposal_id: ProposalId, payload: ProposalAcceptRequest, service: Service
) -> ProposalDetailResponse:
    try:
        return service.accept_version(proposal_id=proposal_id, payload=payload)
    except ProposalLifecycleError as exc:
        raise_proposal_http_exception(exc)


@router.get(
    "/proposals/{proposal_id}/preflight",
    response_model=PreflightResult,
    status_code=status.HTTP_200_OK,
    summary="Check Sync Preflight",
    description="Runs the preflight gate for a version (accepted, else current, by default).",
)
def check_preflight(
    proposal_id: ProposalId,
    service: Service,
    version_id: Annotated[Optional[str], Query(description="Version to check.")] = None,
) -> PreflightResult:
    try:
        return service.check_preflight(proposal_id=proposal_id, version_id=version_id)
    except ProposalLifecycleError as exc:
        raise_proposal_http_exception(exc)


@router.post(
    "/proposals/{proposal_id}/queue",
    response_model=ProposalDetailResponse,
    status_code=status.HTTP_200_OK,
    summary="Queue Proposal for ERP Sync",
    description="Moves an accepted proposal to queued when its preflight passes, else 409.",
)
def queue_for_sync(proposal_id: ProposalId, service: Service) -> ProposalDetailResponse:
    try:
        return service.queue_for_sync(proposal_id=proposal_id)
    except ProposalLifecycleError as exc:
        raise_proposal_http_exception(exc)


@router.post(
    "/proposals/{proposal_id}/sync",
    response_model=SyncResult,
    status_code=status.HTTP_200_OK,
    summary="Sync Proposal to ERP",
    description=(
        "Runs the ERP booking sequence. Completed steps are skipped; remote failures are "
        "returned as 502 with the persisted error result."
    ),
)
def sync_proposal(proposal_id: ProposalId, service: Service) -> SyncResult:
    try:
        return service.sync_proposal(proposal_id=proposal_id)
    except (ProposalLifecycleError, ErpSyncError) as exc:
        raise_proposal_http_exception(exc)


@router.post(
    "/proposals/{proposal_id}/sync/retry",
    response_model=SyncResult,
    status_code=status.HTTP_200_OK,
    summary="Retry ERP Sync",
)
def retry_sync_proposal(proposal_id: ProposalId, service: Service) -> SyncResult:
    try:
        return service.retry_sync_proposal(proposal_id=proposal_id)
    except (ProposalLifecycleError, ErpSyncError) as exc:
        raise_proposal_http_exception(exc)


@router.get(
    "/proposals/{proposal_id}/sync-records",
    response_model=SyncRecordListResponse,
    status_code=status.HTTP_200_OK,
    summary="List ERP Sync Records",
    description="Remote reservations created for the proposal, including nesting status.",
)
def list_sync_records(proposal_id: ProposalId, service: Service) -> SyncRecordListResponse:
    try:
        return service.list_sync_records(proposal_id=proposal_id)
    except ProposalLifecycleError as exc:
        raise_proposal_http_exception(exc)


@router.get(
    "/proposals/{proposal_id}/events",
    response_model=ProposalEventListResponse,
    status_code=status.HTTP_200_OK,
    summary="List Proposal Audit Events",
    description="Append-only workflow and ERP sync audit trail for the proposal, oldest first.",
)
def list_proposal_events(proposal_id: ProposalId, service: Service) -> ProposalEventListResponse:
    try:
        return service.list_events(proposal_id=proposal_id)
    except ProposalLifecycleError as exc:
        raise_proposal_http_exception(exc)


@router.post(
    "/proposals/{proposal_id}/transitions",
    response_model=ProposalDetailResponse,
    status_code=status.HTTP_200_OK,
    summary="Revoke or Mark Proposal Lost",
)
def transition_proposal(
    proposal_id: ProposalId, payload: ProposalTransitionRequest, service: Service
) -> ProposalDetailResponse:
    try:
        return service.transition(proposal_id=proposal_id, payload=payload)
    except ProposalLifecycleError as exc:
        raise_proposal_http_exception(exc)


@router.post(
    "/snapshots/resolve",
    response_model=SnapshotResolution,
    status_code=status.HTTP_200_OK,
    summary="Resolve Snapshot",
    description="Dry-run resolution of a snapshot without persisting anything.",
)
def resolve_snapshot(payload: RawSnapshot, service: Service) -> SnapshotResolution:
    return service.resolve_snapshot(snapshot=payload)
