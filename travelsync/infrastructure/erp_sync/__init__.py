from travelsync.infrastructure.erp_sync.in_memory import InMemorySyncRecordRepository
from travelsync.infrastructure.erp_sync.postgres import PostgresSyncRecordRepository

__all__ = ["InMemorySyncRecordRepository", "PostgresSyncRecordRepository"]
