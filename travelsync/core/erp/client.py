from typing import Optional, Protocol

from pydantic import BaseModel, Field

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
)


class ErpCallTrace(BaseModel):
    method: str = Field(description="Remote operation name.", examples=["Reserva_Normal_POST"])
    duration_ms: float = Field(default=0.0, examples=[842.5])
    last_request: Optional[str] = Field(default=None)
    last_response: Optional[str] = Field(default=None)


class ErpCallError(Exception):
    def __init__(
        self,
        message: str,
        *,
        operation: str,
        trace: Optional[ErpCallTrace] = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.trace = trace


class ErpClient(Protocol):
    def search_customers(self, *, document: str, page_size: int = 50) -> CustomerSearchResponse: ...

    def create_customer(self, request: CustomerCreateRequest) -> CustomerCreateResponse: ...

    def create_case(self, request: CaseCreateRequest) -> CaseCreateResponse: ...

    def create_reservation(
        self, request: ReservationCreateRequest
    ) -> ReservationCreateResponse: ...

    def set_reservation_nesting(
        self, *, reservation_id: int, container_reservation_id: int
    ) -> NestingResponse: ...

    def get_provider(self, *, provider_id: int) -> Optional[ProviderRecord]: ...

    def search_providers(self, *, query: str, page_size: int = 20) -> list[ProviderRecord]: ...

    def get_agent(self, *, agent_id: int) -> Optional[AgentRecord]: ...

    def search_agents(self, *, query: str, page_size: int = 20) -> list[AgentRecord]: ...
