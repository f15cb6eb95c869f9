from __future__ import annotations

import hashlib
import json
import logging
from collections import Counter
from collections.abc import Iterable, Mapping
from threading import Lock
from typing import Any, Optional

from pydantic import BaseModel

from travelsync.core.common.suppliers import (
    DEFAULT_GENERIC_SUPPLIER_ID,
    DEFAULT_GENERIC_SUPPLIER_NAME,
    DEFAULT_PACKAGE_SUPPLIER_ID,
)
from travelsync.core.erp.client import ErpCallError, ErpCallTrace
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

logger = logging.getLogger(__name__)

REMOTE_METHODS = {
    "search_customers": "Cliente_SEARCH",
    "create_customer": "Cliente_POST",
    "create_case": "Expediente_POST",
    "create_reservation": "Reserva_Normal_POST",
    "set_reservation_nesting": "Reserva_SetAnidacion",
    "get_provider": "Proveedor_GET",
    "search_providers": "Proveedor_SEARCH",
    "get_agent": "AgenteComercial_GET",
    "search_agents": "AgenteComercial_SEARCH",
}

DEFAULT_PROVIDERS: tuple[dict[str, Any], ...] = (
    {"Id": int(DEFAULT_GENERIC_SUPPLIER_ID), "Nombre": DEFAULT_GENERIC_SUPPLIER_NAME},
    {"Id": int(DEFAULT_PACKAGE_SUPPLIER_ID), "Nombre": "Paquetes propios", "NombreAlias": ""},
    {"Id": 1300452, "Nombre": "Hoteles Son Vida SL", "NombreAlias": "Son Vida"},
    {"Id": 1300977, "Nombre": "Golf Son Gual SA", "NombreAlias": "Son Gual"},
)

DEFAULT_AGENTS: tuple[dict[str, Any], ...] = (
    {"Id": 88, "Nombre": "Marta Pons", "Email": "marta@example.com"},
    {"Id": 91, "Nombre": "Joan Ferrer", "Email": "joan@example.com"},
)


class DeterministicErpSimulator:
    """In-process stand-in for the ERP remote interface.

    Identifiers are derived from ``sha256(seed:operation:sequence)``, so two simulators built
    with the same seed hand out the same ids for the same call sequence. Any operation named
    in ``fail_operations`` raises :class:`ErpCallError` with a call trace, which is how tests
    drive partial failures and retries. Every call is counted in :attr:`calls`.
    """

    def __init__(
        self,
        seed: int = 42,
        *,
        fail_operations: Iterable[str] = (),
        providers: Optional[Iterable[Mapping[str, Any]]] = None,
        agents: Optional[Iterable[Mapping[str, Any]]] = None,
    ) -> None:
        self.seed = int(seed)
        self.calls: Counter[str] = Counter()
        self._fail_operations = set(fail_operations)
        self._lock = Lock()
        self._sequence = 0
        self._providers = [dict(raw) for raw in (providers or DEFAULT_PROVIDERS)]
        self._agents = [dict(raw) for raw in (agents or DEFAULT_AGENTS)]
        self.customers: dict[str, int] = {}
        self.cases: dict[int, CaseCreateRequest] = {}
        self.reservations: dict[int, ReservationCreateRequest] = {}
        self.nesting: dict[int, int] = {}

    def fail(self, operation: str) -> None:
        self._fail_operations.add(operation)

    def recover(self, operation: Optional[str] = None) -> None:
        if operation is None:
            self._fail_operations.clear()
        else:
            self._fail_operations.discard(operation)

    def search_customers(self, *, document: str, page_size: int = 50) -> CustomerSearchResponse:
        self._enter("search_customers", {"document": document, "page_size": page_size})
        customer_id = self.customers.get(document)
        if customer_id is None:
            return CustomerSearchResponse.from_raw({"Cliente_SEARCHResult": None})
        return CustomerSearchResponse.from_raw(
            {"Cliente_SEARCHResult": {"WsCliente": [{"Id": customer_id}]}}
        )

    def create_customer(self, request: CustomerCreateRequest) -> CustomerCreateResponse:
        self._enter("create_customer", request)
        customer_id = self._next_id("create_customer")
        if request.document:
            self.customers[request.document] = customer_id
        return CustomerCreateResponse.from_raw({"Cliente_POSTResult": customer_id})

    def create_case(self, request: CaseCreateRequest) -> CaseCreateResponse:
        self._enter("create_case", request)
        case_id = self._next_id("create_case")
        self.cases[case_id] = request
        return CaseCreateResponse.from_raw({"Expediente_POSTResult": case_id})

    def create_reservation(self, request: ReservationCreateRequest) -> ReservationCreateResponse:
        self._enter("create_reservation", request)
        if request.case_id not in self.cases:
            raise self._error("create_reservation", "ERP_CASE_UNKNOWN", request)
        reservation_id = self._next_id("create_reservation")
        self.reservations[reservation_id] = request
        return ReservationCreateResponse.from_raw({"Reserva_Normal_POSTResult": reservation_id})

    def set_reservation_nesting(
        self, *, reservation_id: int, container_reservation_id: int
    ) -> NestingResponse:
        payload = {
            "reservation_id": reservation_id,
            "container_reservation_id": container_reservation_id,
        }
        self._enter("set_reservation_nesting", payload)
        linked = (
            reservation_id in self.reservations
            and container_reservation_id in self.reservations
        )
        if linked:
            self.nesting[reservation_id] = container_reservation_id
        return NestingResponse.from_raw({"Reserva_SetAnidacionResult": linked})

    def get_provider(self, *, provider_id: int) -> Optional[ProviderRecord]:
        self._enter("get_provider", {"provider_id": provider_id})
        for raw in self._providers:
            if raw.get("Id") == provider_id:
                return ProviderRecord.from_raw(raw)
        return None

    def search_providers(self, *, query: str, page_size: int = 20) -> list[ProviderRecord]:
        self._enter("search_providers", {"query": query, "page_size": page_size})
        fields = ("Nombre", "NombreAlias")
        matches = [raw for raw in self._providers if _matches(raw, query, fields)]
        records = [ProviderRecord.from_raw(raw) for raw in matches[:page_size]]
        return [record for record in records if record is not None]

    def get_agent(self, *, agent_id: int) -> Optional[AgentRecord]:
        self._enter("get_agent", {"agent_id": agent_id})
        for raw in self._agents:
            if raw.get("Id") == agent_id:
                return AgentRecord.from_raw(raw)
        return None

    def search_agents(self, *, query: str, page_size: int = 20) -> list[AgentRecord]:
        self._enter("search_agents", {"query": query, "page_size": page_size})
        matches = [raw for raw in self._agents if _matches(raw, query, ("Nombre", "Email"))]
        records = [AgentRecord.from_raw(raw) for raw in matches[:page_size]]
        return [record for record in records if record is not None]

    def _enter(self, operation: str, request: Any) -> None:
        with self._lock:
            self.calls[operation] += 1
        if operation in self._fail_operations:
            raise self._error(operation, f"ERP_CALL_FAILED:{operation}", request)

    def _error(self, operation: str, message: str, request: Any) -> ErpCallError:
        logger.warning(
            "erp_simulator.call_failed",
            extra={"extra_fields": {"operation": operation, "error": message}},
        )
        return ErpCallError(
            message,
            operation=operation,
            trace=ErpCallTrace(
                method=REMOTE_METHODS[operation],
                duration_ms=0.0,
                last_request=_serialize(request),
                last_response=None,
            ),
        )

    def _next_id(self, operation: str) -> int:
        with self._lock:
            self._sequence += 1
            sequence = self._sequence
        digest = hashlib.sha256(f"{self.seed}:{operation}:{sequence}".encode("utf-8")).hexdigest()
        return 1_000_000 + int(digest[:8], 16) % 9_000_000


def _matches(raw: Mapping[str, Any], query: str, fields: tuple[str, ...]) -> bool:
    needle = query.strip().lower()
    if not needle:
        return False
    return any(needle in str(raw.get(field) or "").lower() for field in fields)


def _serialize(request: Any) -> str:
    if isinstance(request, BaseModel):
        return request.model_dump_json()
    return json.dumps(request, sort_keys=True, default=str)
