from travelsync.core.mappings.models import (
    EffectiveSupplierMapping,
    SupplierMappingBatchRequest,
    SupplierMappingBatchResult,
    SupplierMappingListResponse,
    SupplierMappingRecord,
    SupplierMappingUpsertRequest,
)
from travelsync.core.mappings.repository import SupplierMappingRepository
from travelsync.core.mappings.service import (
    MappingError,
    MappingNotFoundError,
    MappingValidationError,
    SupplierLookupError,
    SupplierMappingService,
    SupplierNotFoundError,
    effective_supplier_mapping,
)

__all__ = [
    "EffectiveSupplierMapping",
    "MappingError",
    "MappingNotFoundError",
    "MappingValidationError",
    "SupplierLookupError",
    "SupplierMappingBatchRequest",
    "SupplierMappingBatchResult",
    "SupplierMappingListResponse",
    "SupplierMappingRecord",
    "SupplierMappingRepository",
    "SupplierMappingService",
    "SupplierMappingUpsertRequest",
    "SupplierNotFoundError",
    "effective_supplier_mapping",
]
