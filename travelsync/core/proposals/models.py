from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from travelsync.core.snapshots.models import PreflightResult, RawSnapshot

ProposalStatus = Literal[
    "draft",
    "sent",
    "accepted",
    "queued",
    "synced",
    "error",
    "revoked",
    "lost",
]
ErpSyncStatus = Literal["none", "pending", "ok", "error"]
ProposalAcceptedBy = Literal["admin", "public"]
ProposalTransitionEvent = Literal["REVOKE", "MARK_LOST"]
ProposalEventType = Literal[
    "CREATED",
    "VERSION_SENT",
    "ACCEPTED",
    "QUEUED",
    "PREFLIGHT_BLOCKED",
    "REVOKED",
    "MARKED_LOST",
    "SYNC_STARTED",
    "SYNC_SUCCEEDED",
    "SYNC_FAILED",
]


class ProposalCreateRequest(BaseModel):
    created_by: str = Field(description="Actor id creating the draft.", examples=["agent_7"])
    title: str = Field(default="", description="Proposal title.", examples=["Mallorca golf week"])
    customer_name: str = Field(default="", examples=["Ana Garcia Lopez"])
    customer_email: str = Field(default="", examples=["ana@example.com"])
    customer_country: Optional[str] = Field(
        default=None,
        description="ISO 3166 alpha-2 destination country.",
        examples=["ES"],
    )
    start_date: Optional[str] = Field(default=None, examples=["2026-05-01"])
    end_date: Optional[str] = Field(default=None, examples=["2026-05-08"])
    pax_total: int = Field(default=1, ge=0, examples=[2])
    currency: str = Field(default="EUR", examples=["EUR"])


class ProposalVersionRequest(BaseModel):
    created_by: str = Field(description="Actor id sending the version.", examples=["agent_7"])
    snapshot: RawSnapshot = Field(description="Pricing snapshot produced by the wizard.")


class ProposalAcceptRequest(BaseModel):
    version_id: str = Field(description="Version being accepted.", examples=["tpv_1a2b3c4d5e6f"])
    accepted_by: ProposalAcceptedBy = Field(
        default="admin",
        description="Admin acceptance or customer acceptance through the public link.",
        examples=["public"],
    )
    public_token: Optional[str] = Field(
        default=None,
        description="Version sharing token; required for public acceptance.",
        examples=["3f9c0d7e2a8b4c61"],
    )
    full_name: str = Field(default="", description="Traveler full name.", examples=["Ana Garcia"])
    document: str = Field(
        default="", description="Traveler identity document.", examples=["12345678Z"]
    )


class ProposalTransitionRequest(BaseModel):
    event: ProposalTransitionEvent = Field(examples=["REVOKE"])
    actor_id: str = Field(examples=["agent_7"])


class ProposalRecord(BaseModel):
    proposal_id: str = Field(description="Proposal identifier.", examples=["tp_1a2b3c4d5e6f"])
    created_by: str = Field(examples=["agent_7"])
    created_at: datetime
    updated_at: datetime
    title: str = ""
    customer_name: str = ""
    customer_email: str = ""
    customer_country: Optional[str] = None
    traveler_full_name: str = ""
    traveler_document: str = ""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    pax_total: int = 1
    currency: str = "EUR"
    status: ProposalStatus = "draft"
    current_version_id: Optional[str] = None
    accepted_version_id: Optional[str] = None
    accepted_by: Optional[ProposalAcceptedBy] = None
    accepted_at: Optional[datetime] = None
    erp_client_id: Optional[int] = None
    erp_case_id: Optional[int] = None
    erp_package_reservation_id: Optional[int] = None
    erp_sync_status: ErpSyncStatus = "none"
    erp_sync_error: Optional[str] = None
    erp_sync_updated_at: Optional[datetime] = None


class ProposalVersionRecord(BaseModel):
    version_id: str = Field(examples=["tpv_1a2b3c4d5e6f"])
    proposal_id: str = Field(examples=["tp_1a2b3c4d5e6f"])
    version_no: int = Field(examples=[1])
    public_token: str = Field(examples=["3f9c0d7e2a8b4c61"])
    snapshot_json: dict[str, Any]
    snapshot_hash: str = Field(examples=["sha256:..."])
    totals_sell_price: float = 0.0
    totals_cost_net: float = 0.0
    created_by: str
    created_at: datetime


class ProposalItemRecord(BaseModel):
    item_id: str = Field(examples=["tpi_1a2b3c4d5e6f"])
    version_id: str
    position: int = Field(description="Zero-based position in the snapshot items list.")
    day_index: int = 1
    service_type: str = ""
    display_name: str = ""
    object_type: Optional[str] = None
    object_id: int = 0
    erp_entity_type: Optional[str] = None
    erp_entity_id: Optional[str] = None
    erp_supplier_id: Optional[str] = None
    erp_supplier_name: str = ""
    supplier_source: Optional[str] = None
    supplier_resolution_chain: list[str] = Field(default_factory=list)
    warnings: list[dict[str, Any]] = Field(default_factory=list)
    blocking: list[dict[str, Any]] = Field(default_factory=list)
    preflight_ok: bool = True
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    quantity: int = 1
    pax_quantity: int = 1
    unit_cost_net: float = 0.0
    unit_sell_price: float = 0.0
    line_cost_net: float = 0.0
    line_sell_price: float = 0.0
    notes_public: str = ""
    notes_internal: str = ""


class ProposalSummary(BaseModel):
    proposal_id: str = Field(examples=["tp_1a2b3c4d5e6f"])
    title: str = Field(examples=["Mallorca golf week"])
    customer_name: str = Field(examples=["Ana Garcia Lopez"])
    status: ProposalStatus = Field(examples=["sent"])
    current_version_id: Optional[str] = Field(default=None, examples=["tpv_1a2b3c4d5e6f"])
    accepted_version_id: Optional[str] = Field(default=None)
    erp_sync_status: ErpSyncStatus = Field(examples=["none"])
    erp_sync_error: Optional[str] = Field(default=None)
    erp_client_id: Optional[int] = Field(default=None, examples=[4410021])
    erp_case_id: Optional[int] = Field(default=None, examples=[9920012])
    erp_package_reservation_id: Optional[int] = Field(default=None, examples=[7730001])
    created_at: str = Field(examples=["2026-03-01T10:00:00+00:00"])
    updated_at: str = Field(examples=["2026-03-01T10:05:00+00:00"])


class ProposalVersionDetail(BaseModel):
    version_id: str
    proposal_id: str
    version_no: int
    public_token: str
    snapshot_hash: str
    created_at: str
    created_by: str
    totals_sell_price: float
    totals_cost_net: float
    snapshot: dict[str, Any] = Field(description="Resolved snapshot persisted with the version.")
    items: list[ProposalItemRecord] = Field(default_factory=list)


class ProposalDetailResponse(BaseModel):
    proposal: ProposalSummary
    current_version: Optional[ProposalVersionDetail] = None


class ProposalVersionCreateResponse(BaseModel):
    proposal: ProposalSummary
    version: ProposalVersionDetail
    preflight: PreflightResult


class ProposalListResponse(BaseModel):
    items: list[ProposalSummary] = Field(default_factory=list)


class ProposalEventRecord(BaseModel):
    """Append-only audit entry for a proposal; never updated once written."""

    event_id: str = Field(description="Audit event identifier.", examples=["tpe_1a2b3c4d5e6f"])
    proposal_id: str = Field(examples=["tp_1a2b3c4d5e6f"])
    event_type: ProposalEventType = Field(examples=["SYNC_FAILED"])
    actor_id: str = Field(
        description="Actor that triggered the event; ERP sync runs use `system`.",
        examples=["agent_7"],
    )
    occurred_at: datetime
    version_id: Optional[str] = Field(default=None, examples=["tpv_1a2b3c4d5e6f"])
    from_status: Optional[ProposalStatus] = Field(default=None, examples=["accepted"])
    to_status: Optional[ProposalStatus] = Field(default=None, examples=["queued"])
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Structured context such as the ERP error message or blocking codes.",
        examples=[{"error": "ERP_CALL_FAILED:create_case"}],
    )


class ProposalEventListResponse(BaseModel):
    proposal_id: str = Field(examples=["tp_1a2b3c4d5e6f"])
    events: list[ProposalEventRecord] = Field(
        default_factory=list, description="Audit events ordered by occurrence."
    )
