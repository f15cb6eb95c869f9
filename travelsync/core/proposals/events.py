import uuid
from datetime import datetime
from typing import Any, Optional

from travelsync.core.proposals.models import (
    ProposalEventRecord,
    ProposalEventType,
    ProposalStatus,
)
from travelsync.core.proposals.repository import ProposalRepository

SYSTEM_ACTOR = "system"


def record_proposal_event(
    repository: ProposalRepository,
    *,
    proposal_id: str,
    event_type: ProposalEventType,
    actor_id: str,
    occurred_at: datetime,
    version_id: Optional[str] = None,
    from_status: Optional[ProposalStatus] = None,
    to_status: Optional[ProposalStatus] = None,
    details: Optional[dict[str, Any]] = None,
) -> ProposalEventRecord:
    event = ProposalEventRecord(
        event_id=f"tpe_{uuid.uuid4().hex[:12]}",
        proposal_id=proposal_id,
        event_type=event_type,
        actor_id=actor_id,
        occurred_at=occurred_at,
        version_id=version_id,
        from_status=from_status,
        to_status=to_status,
        details=details or {},
    )
    repository.append_event(event)
    return event
