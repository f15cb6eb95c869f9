from copy import deepcopy
from threading import Lock
from typing import Optional

from travelsync.core.mappings.models import SupplierMappingRecord
from travelsync.core.mappings.repository import SupplierMappingRepository


class InMemorySupplierMappingRepository(SupplierMappingRepository):
    def __init__(self) -> None:
        self._lock = Lock()
        self._mappings: dict[tuple[str, int], SupplierMappingRecord] = {}

    def get_mapping(self, *, object_type: str, object_id: int) -> Optional[SupplierMappingRecord]:
        with self._lock:
            mapping = self._mappings.get((object_type, object_id))
            return deepcopy(mapping) if mapping is not None else None

    def get_active_mapping(
        self, *, object_type: str, object_id: int
    ) -> Optional[SupplierMappingRecord]:
        mapping = self.get_mapping(object_type=object_type, object_id=object_id)
        if mapping is None or mapping.status != "active":
            return None
        return mapping

    def upsert_mapping(self, mapping: SupplierMappingRecord) -> bool:
        key = (mapping.object_type, mapping.object_id)
        with self._lock:
            created = key not in self._mappings
            self._mappings[key] = deepcopy(mapping)
        return created

    def list_mappings(
        self, *, object_type: Optional[str], status: Optional[str]
    ) -> list[SupplierMappingRecord]:
        with self._lock:
            rows = [deepcopy(mapping) for mapping in self._mappings.values()]
        if object_type is not None:
            rows = [row for row in rows if row.object_type == object_type]
        if status is not None:
            rows = [row for row in rows if row.status == status]
        return sorted(rows, key=lambda x: (x.object_type, x.object_id))
