from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ServiceType = Literal["hotel", "golf", "transfer", "extra", "package"]
SupplierSource = Literal["manual", "override", "mapped", "generic"]
PreflightSeverity = Literal["warning", "blocking"]
PreflightSource = Literal["snapshot", "legacy"]
HotelPricingMode = Literal["simple", "per_night"]


class PreflightMessage(BaseModel):
    code: str = Field(
        description="Stable diagnostic code.",
        examples=["GENERIC_SUPPLIER"],
    )
    message: str = Field(
        description="Human readable explanation of the diagnostic.",
        examples=["Missing mapping, using generic supplier"],
    )
    severity: PreflightSeverity = Field(
        description="Whether the diagnostic blocks synchronization.",
        examples=["warning"],
    )
    item_id: Optional[str] = Field(
        default=None,
        description="Persisted item id, set by the legacy preflight path.",
        examples=["tpi_001"],
    )
    service_type: Optional[str] = Field(
        default=None,
        description="Service type of the offending item, set by the legacy preflight path.",
        examples=["hotel"],
    )
    title: Optional[str] = Field(
        default=None,
        description="Item title, set by the legacy preflight path.",
        examples=["Hotel Son Vida"],
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Supplier or fallback details attached to legacy diagnostics.",
        examples=[{"supplier": {"erp_supplier_id": "1249826"}}],
    )


class PreflightResult(BaseModel):
    ok: bool = Field(description="True when no blocking diagnostic exists.", examples=[True])
    warnings: list[PreflightMessage] = Field(
        default_factory=list,
        description="Advisory diagnostics.",
        examples=[[]],
    )
    blocking: list[PreflightMessage] = Field(
        default_factory=list,
        description="Diagnostics preventing the version from being queued.",
        examples=[[]],
    )
    source: PreflightSource = Field(
        default="snapshot",
        description="Whether the result was re-aggregated from the snapshot or re-derived.",
        examples=["snapshot"],
    )


class ResolutionContext(BaseModel):
    proposal_id: Optional[str] = Field(
        default=None, description="Proposal being resolved.", examples=["tp_001"]
    )
    version_number: Optional[int] = Field(
        default=None, description="Version number being created.", examples=[2]
    )


class ResolutionError(BaseModel):
    index: int = Field(description="Zero-based item position.", examples=[0])
    code: str = Field(
        description="Blocking code raised for the item.", examples=["MISSING_SUPPLIER"]
    )


class ResolutionLogEntry(BaseModel):
    index: int = Field(description="Zero-based item position.", examples=[1])
    service_type: str = Field(description="Service type of the item.", examples=["golf"])


class ResolutionLogs(BaseModel):
    generic: list[ResolutionLogEntry] = Field(default_factory=list)
    override: list[ResolutionLogEntry] = Field(default_factory=list)
    blocking: list[ResolutionLogEntry] = Field(default_factory=list)
    missing_supplier_name: list[ResolutionLogEntry] = Field(default_factory=list)


class SnapshotResolution(BaseModel):
    snapshot: dict[str, Any] = Field(
        description="Resolved snapshot with supplier fields and per-item diagnostics.",
    )
    preflight: PreflightResult = Field(description="Snapshot-level preflight verdict.")
    errors: list[ResolutionError] = Field(
        default_factory=list,
        description="Hard errors; non-empty only when blocking diagnostics exist.",
    )
    logs: ResolutionLogs = Field(
        default_factory=ResolutionLogs,
        description="Item positions grouped by notable resolution outcome.",
    )
    context: ResolutionContext = Field(default_factory=ResolutionContext)

    @property
    def warnings(self) -> list[PreflightMessage]:
        return self.preflight.warnings

    @property
    def blocking(self) -> list[PreflightMessage]:
        return self.preflight.blocking


class SnapshotHeader(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: Optional[str] = Field(
        default=None, description="Proposal title shown to the customer.", examples=["Golf week"]
    )
    customer_name: Optional[str] = Field(
        default=None, description="Customer display name.", examples=["Ana Garcia Lopez"]
    )
    customer_email: Optional[str] = Field(
        default=None, description="Customer email.", examples=["ana@example.com"]
    )
    customer_country: Optional[str] = Field(
        default=None, description="ISO 3166 alpha-2 destination country.", examples=["ES"]
    )
    start_date: Optional[str] = Field(
        default=None, description="Trip start date (YYYY-MM-DD).", examples=["2026-05-01"]
    )
    end_date: Optional[str] = Field(
        default=None, description="Trip end date (YYYY-MM-DD).", examples=["2026-05-08"]
    )
    pax_total: Optional[int] = Field(
        default=None, description="Total travellers.", examples=[2]
    )
    currency: Optional[str] = Field(default=None, description="Currency code.", examples=["EUR"])


class RawSnapshot(BaseModel):
    """Client-submitted pricing snapshot.

    Items stay loosely typed: the wizard sends per-service shapes and the resolver is the
    component that validates and normalizes them.
    """

    model_config = ConfigDict(extra="allow")

    header: SnapshotHeader = Field(default_factory=SnapshotHeader)
    items: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Ordered line items as produced by the proposal wizard.",
        examples=[
            [
                {
                    "service_type": "golf",
                    "display_name": "Green fees Son Gual",
                    "object_type": "golf",
                    "object_id": 77,
                    "green_fees_per_person": 2,
                    "line_cost_net": 240.0,
                    "line_sell_price": 300.0,
                }
            ]
        ],
    )
    totals: dict[str, Any] = Field(
        default_factory=dict,
        description="Computed totals (totals_sell_price, totals_cost_net).",
        examples=[{"totals_sell_price": 300.0, "totals_cost_net": 240.0}],
    )
