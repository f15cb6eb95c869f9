from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, status

from travelsync.api.routers.http_errors import raise_mapping_http_exception
from travelsync.api.routers.runtime import get_supplier_mapping_service
from travelsync.core.erp import AgentRecord, ProviderRecord
from travelsync.core.mappings import (
    EffectiveSupplierMapping,
    MappingError,
    SupplierMappingBatchRequest,
    SupplierMappingBatchResult,
    SupplierMappingListResponse,
    SupplierMappingRecord,
    SupplierMappingService,
    SupplierMappingUpsertRequest,
)

router = APIRouter(tags=["ERP Supplier Mappings"])

Service = Annotated[SupplierMappingService, Depends(get_supplier_mapping_service)]
ObjectType = Annotated[str, Path(description="Catalog object type.", examples=["hotel"])]
ObjectId = Annotated[int, Path(gt=0, description="Catalog object id.", examples=[412])]


@router.put(
    "/erp/mappings",
    response_model=SupplierMappingRecord,
    status_code=status.HTTP_200_OK,
    summary="Upsert Supplier Mapping",
    description=(
        "Maps a catalog object to an ERP entity. Supplier entities are validated against the "
        "ERP and take the ERP name, preferring the commercial alias."
    ),
)
def upsert_mapping(
    payload: SupplierMappingUpsertRequest, service: Service
) -> SupplierMappingRecord:
    try:
        return service.upsert_mapping(payload=payload)
    except MappingError as exc:
        raise_mapping_http_exception(exc)


@router.post(
    "/erp/mappings/batch",
    response_model=SupplierMappingBatchResult,
    status_code=status.HTTP_200_OK,
    summary="Batch Upsert Supplier Mappings",
    description="Maps many catalog objects of one type to a single validated ERP supplier.",
)
def batch_upsert_mappings(
    payload: SupplierMappingBatchRequest, service: Service
) -> SupplierMappingBatchResult:
    try:
        return service.batch_upsert(payload=payload)
    except MappingError as exc:
        raise_mapping_http_exception(exc)


@router.get(
    "/erp/mappings",
    response_model=SupplierMappingListResponse,
    status_code=status.HTTP_200_OK,
    summary="List Supplier Mappings",
)
def list_mappings(
    service: Service,
    object_type: Annotated[Optional[str], Query(description="Catalog object type.")] = None,
    mapping_status: Annotated[
        Optional[str], Query(alias="status", description="Mapping status filter.")
    ] = None,
) -> SupplierMappingListResponse:
    return service.list_mappings(object_type=object_type, status=mapping_status)


@router.get(
    "/erp/mappings/{object_type}/{object_id}",
    response_model=SupplierMappingRecord,
    status_code=status.HTTP_200_OK,
    summary="Get Supplier Mapping",
)
def get_mapping(
    object_type: ObjectType, object_id: ObjectId, service: Service
) -> SupplierMappingRecord:
    try:
        return service.get_mapping(object_type=object_type, object_id=object_id)
    except MappingError as exc:
        raise_mapping_http_exception(exc)


@router.get(
    "/erp/mappings/{object_type}/{object_id}/effective",
    response_model=EffectiveSupplierMapping,
    status_code=status.HTTP_200_OK,
    summary="Get Effective Supplier Mapping",
    description="Active mapping, or the generic supplier flagged needs_review when none exists.",
)
def get_effective_mapping(
    object_type: ObjectType, object_id: ObjectId, service: Service
) -> EffectiveSupplierMapping:
    return service.get_effective_mapping(object_type=object_type, object_id=object_id)


@router.get(
    "/erp/providers",
    response_model=list[ProviderRecord],
    status_code=status.HTTP_200_OK,
    summary="Search ERP Suppliers",
)
def search_providers(
    service: Service,
    q: Annotated[str, Query(description="Name or alias fragment.", examples=["vida"])] = "",
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
) -> list[ProviderRecord]:
    try:
        return service.search_providers(query=q, page_size=page_size)
    except MappingError as exc:
        raise_mapping_http_exception(exc)


@router.get(
    "/erp/providers/{provider_id}",
    response_model=ProviderRecord,
    status_code=status.HTTP_200_OK,
    summary="Get ERP Supplier",
)
def get_provider(
    provider_id: Annotated[int, Path(gt=0, description="ERP supplier id.")], service: Service
) -> ProviderRecord:
    try:
        return service.get_provider(provider_id=provider_id)
    except MappingError as exc:
        raise_mapping_http_exception(exc)


@router.get(
    "/erp/agents",
    response_model=list[AgentRecord],
    status_code=status.HTTP_200_OK,
    summary="Search ERP Sales Agents",
)
def search_agents(
    service: Service,
    q: Annotated[str, Query(description="Name or email fragment.", examples=["marta"])] = "",
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
) -> list[AgentRecord]:
    try:
        return service.search_agents(query=q, page_size=page_size)
    except MappingError as exc:
        raise_mapping_http_exception(exc)
