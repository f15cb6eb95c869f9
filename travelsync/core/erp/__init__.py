from travelsync.core.erp.client import ErpCallError, ErpCallTrace, ErpClient
from travelsync.core.erp.models import (
    AgentRecord,
    CaseCreateRequest,
    CaseCreateResponse,
    CustomerCreateRequest,
    CustomerCreateResponse,
    CustomerSearchResponse,
    NestingResponse,
    ProviderRecord,
    ReservationCreateRequest,
    ReservationCreateResponse,
    extract_positive_id,
)

__all__ = [
    "AgentRecord",
    "CaseCreateRequest",
    "CaseCreateResponse",
    "CustomerCreateRequest",
    "CustomerCreateResponse",
    "CustomerSearchResponse",
    "ErpCallError",
    "ErpCallTrace",
    "ErpClient",
    "NestingResponse",
    "ProviderRecord",
    "ReservationCreateRequest",
    "ReservationCreateResponse",
    "extract_positive_id",
]
