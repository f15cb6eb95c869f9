import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from travelsync.core.common.suppliers import SupplierDefaults
from travelsync.core.erp.client import ErpCallError, ErpClient
from travelsync.core.erp.models import AgentRecord, ProviderRecord
from travelsync.core.mappings.models import (
    EffectiveSupplierMapping,
    MappingStatus,
    SupplierMappingBatchError,
    SupplierMappingBatchRequest,
    SupplierMappingBatchResult,
    SupplierMappingListResponse,
    SupplierMappingRecord,
    SupplierMappingUpsertRequest,
)
from travelsync.core.mappings.repository import SupplierMappingRepository

logger = logging.getLogger(__name__)


class MappingError(Exception):
    pass


class MappingValidationError(MappingError):
    pass


class MappingNotFoundError(MappingError):
    pass


class SupplierNotFoundError(MappingError):
    pass


class SupplierLookupError(MappingError):
    pass


def effective_supplier_mapping(
    *,
    repository: SupplierMappingRepository,
    supplier_defaults: SupplierDefaults,
    object_type: str,
    object_id: int,
) -> EffectiveSupplierMapping:
    """Active mapping for a catalog object, or the generic supplier flagged for review."""
    mapping = repository.get_active_mapping(object_type=object_type, object_id=object_id)
    if mapping is not None:
        return EffectiveSupplierMapping(
            object_type=mapping.object_type,
            object_id=mapping.object_id,
            entity_type=mapping.entity_type,
            entity_id=mapping.entity_id,
            supplier_id=mapping.supplier_id,
            supplier_name=mapping.supplier_name,
            status=mapping.status,
            match_type=mapping.match_type,
        )
    return EffectiveSupplierMapping(
        object_type=object_type,
        object_id=object_id,
        entity_type="supplier",
        entity_id=supplier_defaults.supplier_id,
        supplier_id=supplier_defaults.supplier_id,
        supplier_name=supplier_defaults.supplier_name,
        status="needs_review",
        match_type="auto_generic",
    )


class SupplierMappingService:
    def __init__(
        self,
        *,
        repository: SupplierMappingRepository,
        erp_client: ErpClient,
        supplier_defaults: SupplierDefaults,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._erp = erp_client
        self._defaults = supplier_defaults
        self._clock = clock or _utc_now

    def upsert_mapping(self, *, payload: SupplierMappingUpsertRequest) -> SupplierMappingRecord:
        entity_id = payload.entity_id.strip()
        if not entity_id:
            raise MappingValidationError("ENTITY_ID_REQUIRED")

        supplier_id = (payload.supplier_id or "").strip()
        supplier_name = payload.supplier_name
        status = payload.status
        if payload.entity_type == "supplier":
            provider_id = _provider_number(entity_id)
            provider = self._lookup_provider(provider_id)
            supplier_name = provider.display_name
            supplier_id = supplier_id or str(provider_id)
            status = _validated_status(status=payload.status, match_type=payload.match_type)
        if not supplier_id:
            raise MappingValidationError("SUPPLIER_ID_REQUIRED")

        record = SupplierMappingRecord(
            object_type=payload.object_type,
            object_id=payload.object_id,
            entity_type=payload.entity_type,
            entity_id=entity_id,
            supplier_id=supplier_id,
            supplier_name=supplier_name,
            status=status,
            match_type=payload.match_type,
            updated_at=self._clock(),
            updated_by=payload.updated_by,
        )
        created = self._repository.upsert_mapping(record)
        logger.info(
            "mapping.upserted",
            extra={
                "extra_fields": {
                    "object_type": record.object_type,
                    "object_id": record.object_id,
                    "supplier_id": record.supplier_id,
                    "status": record.status,
                    "created": created,
                }
            },
        )
        return record

    def batch_upsert(self, *, payload: SupplierMappingBatchRequest) -> SupplierMappingBatchResult:
        provider = self._lookup_provider(payload.supplier_id)
        supplier_id = str(payload.supplier_id)
        now = self._clock()

        result = SupplierMappingBatchResult(
            ok=True, total=len(payload.object_ids), updated=0, created=0
        )
        for object_id in payload.object_ids:
            if object_id <= 0:
                result.ok = False
                result.errors.append(
                    SupplierMappingBatchError(object_id=object_id, error="INVALID_OBJECT_ID")
                )
                continue
            created = self._repository.upsert_mapping(
                SupplierMappingRecord(
                    object_type=payload.object_type,
                    object_id=object_id,
                    entity_type="supplier",
                    entity_id=supplier_id,
                    supplier_id=supplier_id,
                    supplier_name=provider.display_name,
                    status=payload.status,
                    match_type=payload.match_type,
                    updated_at=now,
                    updated_by=payload.updated_by,
                )
            )
            if created:
                result.created += 1
            else:
                result.updated += 1

        logger.info(
            "mapping.batch_upserted",
            extra={
                "extra_fields": {
                    "object_type": payload.object_type,
                    "supplier_id": supplier_id,
                    "total": result.total,
                    "created": result.created,
                    "updated": result.updated,
                    "errors": len(result.errors),
                }
            },
        )
        return result

    def get_effective_mapping(
        self, *, object_type: str, object_id: int
    ) -> EffectiveSupplierMapping:
        return effective_supplier_mapping(
            repository=self._repository,
            supplier_defaults=self._defaults,
            object_type=object_type,
            object_id=object_id,
        )

    def get_mapping(self, *, object_type: str, object_id: int) -> SupplierMappingRecord:
        mapping = self._repository.get_mapping(object_type=object_type, object_id=object_id)
        if mapping is None:
            raise MappingNotFoundError("MAPPING_NOT_FOUND")
        return mapping

    def list_mappings(
        self, *, object_type: Optional[str], status: Optional[str]
    ) -> SupplierMappingListResponse:
        return SupplierMappingListResponse(
            items=self._repository.list_mappings(object_type=object_type, status=status)
        )

    def search_providers(self, *, query: str, page_size: int = 20) -> list[ProviderRecord]:
        if len(query.strip()) < 2:
            return []
        try:
            return self._erp.search_providers(query=query.strip(), page_size=page_size)
        except ErpCallError as exc:
            raise SupplierLookupError(f"SUPPLIER_LOOKUP_FAILED:{exc}") from exc

    def get_provider(self, *, provider_id: int) -> ProviderRecord:
        return self._lookup_provider(provider_id)

    def search_agents(self, *, query: str, page_size: int = 20) -> list[AgentRecord]:
        if len(query.strip()) < 2:
            return []
        try:
            return self._erp.search_agents(query=query.strip(), page_size=page_size)
        except ErpCallError as exc:
            raise SupplierLookupError(f"AGENT_LOOKUP_FAILED:{exc}") from exc

    def _lookup_provider(self, provider_id: int) -> ProviderRecord:
        try:
            provider = self._erp.get_provider(provider_id=provider_id)
        except ErpCallError as exc:
            raise SupplierLookupError(f"SUPPLIER_LOOKUP_FAILED:{exc}") from exc
        if provider is None:
            raise SupplierNotFoundError("SUPPLIER_NOT_FOUND")
        return provider


def _validated_status(*, status: MappingStatus, match_type: str) -> MappingStatus:
    if match_type == "auto_generic" or status == "needs_review":
        return "needs_review"
    return "active"


def _provider_number(entity_id: str) -> int:
    if not entity_id.isdigit() or int(entity_id) <= 0:
        raise MappingValidationError("INVALID_SUPPLIER_ENTITY_ID")
    return int(entity_id)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
