from travelsync.infrastructure.mappings.in_memory import InMemorySupplierMappingRepository
from travelsync.infrastructure.mappings.postgres import PostgresSupplierMappingRepository

__all__ = ["InMemorySupplierMappingRepository", "PostgresSupplierMappingRepository"]
