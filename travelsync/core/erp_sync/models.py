from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from travelsync.core.erp.models import NestingStatus, ReservationKind

SyncOutcome = Literal["ok", "pending", "error"]


class SyncRecord(BaseModel):
    proposal_id: str = Field(examples=["tp_1a2b3c4d5e6f"])
    version_id: str = Field(examples=["tpv_1a2b3c4d5e6f"])
    item_id: Optional[str] = Field(
        default=None,
        description="Version item id; null for the package container reservation.",
        examples=["tpi_1a2b3c4d5e6f"],
    )
    external_reservation_id: int = Field(gt=0, examples=[7730042])
    reservation_kind: ReservationKind = Field(examples=["HT"])
    supplier_id: Optional[str] = Field(default=None, examples=["1300452"])
    nesting_status: NestingStatus = Field(
        default="not_required",
        description="pending while a created line reservation awaits linking to its container.",
        examples=["nested"],
    )
    created_at: datetime


class SyncResult(BaseModel):
    proposal_id: str = Field(examples=["tp_1a2b3c4d5e6f"])
    status: SyncOutcome = Field(examples=["ok"])
    erp_client_id: Optional[int] = Field(default=None, examples=[4410021])
    erp_case_id: Optional[int] = Field(default=None, examples=[9920012])
    erp_package_reservation_id: Optional[int] = Field(default=None, examples=[7730001])
    reservations_created: int = Field(default=0, description="Line reservations created now.")
    error: Optional[str] = Field(default=None, examples=["ERP_CALL_FAILED:create_reservation"])


class SyncRecordListResponse(BaseModel):
    items: list[SyncRecord] = Field(default_factory=list)
