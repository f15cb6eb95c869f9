"""Typed request and response shapes for the ERP remote interface.

Every id-bearing response is parsed with :func:`extract_positive_id`: a bare numeric result
is the id; a mapping is read only under the operation's named result field. Nothing else is
inspected, so a response that does not follow the operation contract yields ``id=None``.
"""

from collections.abc import Mapping
from typing import Any, ClassVar, Literal, Optional

from pydantic import BaseModel, Field

ReservationKind = Literal["PQ", "HT", "OT"]
NestingStatus = Literal["not_required", "pending", "nested"]

CUSTOMER_ID_KEYS = ("Id", "ID", "id", "idCliente", "IdCliente", "IDCliente")


def extract_positive_id(raw: Any, *, result_key: str) -> Optional[int]:
    if isinstance(raw, Mapping):
        return _positive_int(raw.get(result_key))
    return _positive_int(raw)


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = int(value)
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        number = int(value.strip())
    else:
        return None
    return number if number > 0 else None


class ErpIdResponse(BaseModel):
    result_key: ClassVar[str] = ""

    id: Optional[int] = Field(default=None, description="Positive ERP identifier, if any.")

    @classmethod
    def from_raw(cls, raw: Any):
        return cls(id=extract_positive_id(raw, result_key=cls.result_key))


class CustomerCreateResponse(ErpIdResponse):
    result_key: ClassVar[str] = "Cliente_POSTResult"


class CaseCreateResponse(ErpIdResponse):
    result_key: ClassVar[str] = "Expediente_POSTResult"


class ReservationCreateResponse(ErpIdResponse):
    result_key: ClassVar[str] = "Reserva_Normal_POSTResult"


class NestingResponse(BaseModel):
    ok: bool = Field(description="True when the ERP linked the reservation.", examples=[True])

    @classmethod
    def from_raw(cls, raw: Any) -> "NestingResponse":
        if isinstance(raw, Mapping):
            raw = raw.get("Reserva_SetAnidacionResult")
        return cls(ok=bool(raw))


class CustomerSearchResponse(BaseModel):
    customer_ids: list[int] = Field(default_factory=list)

    @property
    def first_id(self) -> Optional[int]:
        return self.customer_ids[0] if self.customer_ids else None

    @classmethod
    def from_raw(cls, raw: Any) -> "CustomerSearchResponse":
        """Reads ``Cliente_SEARCHResult.WsCliente`` (one record or a list)."""
        listing = raw.get("Cliente_SEARCHResult") if isinstance(raw, Mapping) else raw
        if isinstance(listing, Mapping) and "WsCliente" in listing:
            listing = listing["WsCliente"]
        if isinstance(listing, Mapping):
            listing = [listing]
        if not isinstance(listing, list):
            return cls()
        customer_ids = []
        for record in listing:
            if not isinstance(record, Mapping):
                continue
            for key in CUSTOMER_ID_KEYS:
                customer_id = _positive_int(record.get(key))
                if customer_id is not None:
                    customer_ids.append(customer_id)
                    break
        return cls(customer_ids=customer_ids)


class ProviderRecord(BaseModel):
    provider_id: int = Field(description="ERP provider id.", examples=[1300452])
    name: str = Field(default="", description="Legal name.", examples=["Hoteles Son Vida SL"])
    alias: str = Field(default="", description="Commercial alias.", examples=["Son Vida"])

    @property
    def display_name(self) -> Optional[str]:
        return self.alias or self.name or None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> Optional["ProviderRecord"]:
        provider_id = _positive_int(raw.get("Id"))
        if provider_id is None:
            return None
        return cls(
            provider_id=provider_id,
            name=str(raw.get("Nombre") or ""),
            alias=str(raw.get("NombreAlias") or ""),
        )


class AgentRecord(BaseModel):
    agent_id: int = Field(description="ERP sales agent id.", examples=[88])
    name: str = Field(default="", examples=["Marta Pons"])
    email: str = Field(default="", examples=["marta@example.com"])

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> Optional["AgentRecord"]:
        agent_id = _positive_int(raw.get("Id"))
        if agent_id is None:
            return None
        return cls(
            agent_id=agent_id,
            name=str(raw.get("Nombre") or ""),
            email=str(raw.get("Email") or ""),
        )


class CustomerCreateRequest(BaseModel):
    document: str = Field(default="", description="Normalized identity document.")
    email: str = Field(default="")
    first_names: str = Field(default="")
    surnames: str = Field(default="")
    phone: str = Field(default="")
    comments: str = Field(default="")
    customer_type: str = Field(default="Particular")


class CaseCreateRequest(BaseModel):
    customer_id: int
    title: str
    internal_notes: str = ""
    opened_on: str
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    destination_country: Optional[str] = None
    destination_zone: str = "XX_No_requerido"


class ReservationCreateRequest(BaseModel):
    case_id: int
    customer_id: int
    supplier_id: int
    kind: ReservationKind = "OT"
    subkind: Optional[str] = None
    description: str = ""
    notes: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    sell_commissionable: float = 0.0
    cost_commissionable: float = 0.0
    planned_margin_pct: Optional[float] = None
    pax: Optional[int] = None
    destination: str = "RestoMundo"
    destination_country: Optional[str] = None
    destination_zone: str = "XX_No_requerido"
    tax_type: str = "G"
    container_reservation_id: Optional[int] = None
    channel: str = "travelsync"
