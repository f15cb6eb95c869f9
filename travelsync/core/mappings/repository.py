from typing import Optional, Protocol

from travelsync.core.mappings.models import SupplierMappingRecord


class SupplierMappingRepository(Protocol):
    def get_mapping(
        self, *, object_type: str, object_id: int
    ) -> Optional[SupplierMappingRecord]: ...

    def get_active_mapping(
        self, *, object_type: str, object_id: int
    ) -> Optional[SupplierMappingRecord]: ...

    def upsert_mapping(self, mapping: SupplierMappingRecord) -> bool: ...

    def list_mappings(
        self, *, object_type: Optional[str], status: Optional[str]
    ) -> list[SupplierMappingRecord]: ...
