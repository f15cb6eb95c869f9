from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

MappingStatus = Literal["active", "needs_review", "deprecated"]
MappingMatchType = Literal["manual", "suggested", "imported", "batch", "auto_generic"]
ErpEntityType = Literal["supplier", "service", "product"]
CatalogObjectType = Literal["hotel", "golf"]


class SupplierMappingRecord(BaseModel):
    object_type: str = Field(description="Catalog object type.", examples=["hotel"])
    object_id: int = Field(description="Catalog object id.", examples=[412])
    entity_type: ErpEntityType = Field(
        default="supplier", description="ERP entity type.", examples=["supplier"]
    )
    entity_id: str = Field(description="ERP entity id.", examples=["1300452"])
    supplier_id: str = Field(description="ERP supplier id.", examples=["1300452"])
    supplier_name: Optional[str] = Field(
        default=None, description="ERP supplier name (alias preferred).", examples=["Son Vida"]
    )
    status: MappingStatus = Field(default="active", examples=["active"])
    match_type: MappingMatchType = Field(default="manual", examples=["manual"])
    updated_at: datetime = Field(
        description="Last write timestamp.", examples=["2026-03-01T10:00:00+00:00"]
    )
    updated_by: Optional[str] = Field(
        default=None, description="Actor id of the last write.", examples=["admin_1"]
    )


class SupplierMappingUpsertRequest(BaseModel):
    object_type: CatalogObjectType = Field(description="Catalog object type.", examples=["hotel"])
    object_id: int = Field(gt=0, description="Catalog object id.", examples=[412])
    entity_type: ErpEntityType = Field(default="supplier", examples=["supplier"])
    entity_id: str = Field(description="ERP entity id.", examples=["1300452"])
    supplier_id: Optional[str] = Field(
        default=None,
        description="ERP supplier id; defaults to entity_id for supplier entities.",
        examples=["1300452"],
    )
    supplier_name: Optional[str] = Field(
        default=None,
        description="Supplier name; replaced by the ERP name for supplier entities.",
        examples=["Son Vida"],
    )
    status: MappingStatus = Field(default="active", examples=["active"])
    match_type: MappingMatchType = Field(default="manual", examples=["manual"])
    updated_by: Optional[str] = Field(default=None, examples=["admin_1"])


class SupplierMappingBatchRequest(BaseModel):
    object_type: CatalogObjectType = Field(description="Catalog object type.", examples=["golf"])
    supplier_id: int = Field(gt=0, description="ERP supplier id applied to every object.")
    object_ids: list[int] = Field(
        min_length=1, description="Catalog object ids to map.", examples=[[77, 78]]
    )
    status: MappingStatus = Field(default="active", examples=["active"])
    match_type: MappingMatchType = Field(default="batch", examples=["batch"])
    updated_by: Optional[str] = Field(default=None, examples=["admin_1"])


class SupplierMappingBatchError(BaseModel):
    object_id: int = Field(examples=[0])
    error: str = Field(examples=["INVALID_OBJECT_ID"])


class SupplierMappingBatchResult(BaseModel):
    ok: bool = Field(description="False when any object failed.", examples=[True])
    total: int = Field(description="Object ids received.", examples=[2])
    updated: int = Field(description="Existing mappings overwritten.", examples=[1])
    created: int = Field(description="New mappings written.", examples=[1])
    errors: list[SupplierMappingBatchError] = Field(default_factory=list)


class EffectiveSupplierMapping(BaseModel):
    object_type: str = Field(examples=["hotel"])
    object_id: int = Field(examples=[412])
    entity_type: ErpEntityType = Field(default="supplier", examples=["supplier"])
    entity_id: str = Field(examples=["1249826"])
    supplier_id: str = Field(examples=["1249826"])
    supplier_name: Optional[str] = Field(default=None, examples=["Proveedores varios"])
    status: MappingStatus = Field(examples=["needs_review"])
    match_type: MappingMatchType = Field(examples=["auto_generic"])


class SupplierMappingListResponse(BaseModel):
    items: list[SupplierMappingRecord] = Field(default_factory=list)
