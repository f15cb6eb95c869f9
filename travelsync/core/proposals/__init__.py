from travelsync.core.proposals.models import (
    ProposalAcceptRequest,
    ProposalCreateRequest,
    ProposalDetailResponse,
    ProposalEventListResponse,
    ProposalEventRecord,
    ProposalItemRecord,
    ProposalListResponse,
    ProposalRecord,
    ProposalSummary,
    ProposalTransitionRequest,
    ProposalVersionCreateResponse,
    ProposalVersionDetail,
    ProposalVersionRecord,
    ProposalVersionRequest,
)
from travelsync.core.proposals.repository import ProposalRepository
from travelsync.core.proposals.service import (
    PreflightFailedError,
    ProposalLifecycleError,
    ProposalNotFoundError,
    ProposalStateConflictError,
    ProposalValidationError,
    ProposalWorkflowService,
)

__all__ = [
    "PreflightFailedError",
    "ProposalAcceptRequest",
    "ProposalCreateRequest",
    "ProposalDetailResponse",
    "ProposalEventListResponse",
    "ProposalEventRecord",
    "ProposalItemRecord",
    "ProposalLifecycleError",
    "ProposalListResponse",
    "ProposalNotFoundError",
    "ProposalRecord",
    "ProposalRepository",
    "ProposalStateConflictError",
    "ProposalSummary",
    "ProposalTransitionRequest",
    "ProposalValidationError",
    "ProposalVersionCreateResponse",
    "ProposalVersionDetail",
    "ProposalVersionRecord",
    "ProposalVersionRequest",
    "ProposalWorkflowService",
]
