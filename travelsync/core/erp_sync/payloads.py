import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from travelsync.core.erp.models import (
    CaseCreateRequest,
    CustomerCreateRequest,
    ReservationCreateRequest,
    ReservationKind,
)
from travelsync.core.proposals.models import (
    ProposalItemRecord,
    ProposalRecord,
    ProposalVersionRecord,
)

EU_COUNTRY_CODES = frozenset(
    {
        "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR", "DE", "GR", "HU", "IE",
        "IT", "LV", "LT", "LU", "MT", "NL", "PL", "PT", "RO", "SK", "SI", "ES", "SE",
    }
)  # fmt: skip

_RESERVATION_KINDS: dict[str, tuple[ReservationKind, Optional[str]]] = {
    "hotel": ("HT", None),
    "golf": ("OT", "Otros"),
    "transfer": ("OT", "Traslados"),
    "extra": ("OT", "Otros"),
}


@dataclass(frozen=True)
class Destination:
    country_code: Optional[str]
    label: str
    zone: str


def classify_destination(
    proposal: ProposalRecord, snapshot: dict[str, Any]
) -> Destination:
    country = _destination_country(proposal, snapshot)
    if country == "ES":
        return Destination(country_code=country, label="Nacional", zone="ES_Nacional")
    if country in EU_COUNTRY_CODES:
        return Destination(country_code=country, label="UnionEuropea", zone="ES_UnionEuropea")
    return Destination(country_code=country, label="RestoMundo", zone="XX_No_requerido")


def normalize_document(document: str) -> str:
    return re.sub(r"\s+", "", document or "").upper().strip()


def split_full_name(full_name: str) -> tuple[str, str]:
    """Splits a full name into ``(first_names, surname)``.

    The last word is the surname; a single word is used for both parts.
    """
    words = (full_name or "").split()
    if not words:
        return "", ""
    if len(words) == 1:
        return words[0], words[0]
    return " ".join(words[:-1]), words[-1]


def traveler_name(proposal: ProposalRecord) -> str:
    return " ".join((proposal.traveler_full_name or proposal.customer_name or "").split())


def reservation_kind(service_type: str) -> tuple[ReservationKind, Optional[str]]:
    return _RESERVATION_KINDS.get(service_type, ("OT", "Otros"))


def build_customer_request(proposal: ProposalRecord) -> CustomerCreateRequest:
    first_names, surnames = split_full_name(traveler_name(proposal))
    return CustomerCreateRequest(
        document=normalize_document(proposal.traveler_document),
        email=proposal.customer_email,
        first_names=first_names,
        surnames=surnames,
        comments=f"Web customer (proposal {proposal.proposal_id})",
    )


def build_case_request(
    *,
    proposal: ProposalRecord,
    version: ProposalVersionRecord,
    customer_id: int,
    opened_on: date,
) -> CaseCreateRequest:
    header = _header(version.snapshot_json)
    destination = classify_destination(proposal, version.snapshot_json)
    return CaseCreateRequest(
        customer_id=customer_id,
        title=f"Proposal #{proposal.proposal_id} - {traveler_name(proposal) or 'Customer'}",
        internal_notes=case_notes(proposal=proposal, version=version),
        opened_on=opened_on.isoformat(),
        date_from=_format_date(header.get("start_date") or proposal.start_date),
        date_to=_format_date(header.get("end_date") or proposal.end_date),
        destination_country=destination.country_code,
        destination_zone=destination.zone,
    )


def case_notes(*, proposal: ProposalRecord, version: ProposalVersionRecord) -> str:
    return (
        f"Created from travelsync. Proposal:{proposal.proposal_id} "
        f"Version:{version.version_no} Token:{version.public_token}"
    )


def build_package_request(
    *,
    proposal: ProposalRecord,
    version: ProposalVersionRecord,
    customer_id: int,
    case_id: int,
    package_supplier_id: str,
    planned_margin_pct: float,
) -> ReservationCreateRequest:
    header = _header(version.snapshot_json)
    destination = classify_destination(proposal, version.snapshot_json)
    return ReservationCreateRequest(
        case_id=case_id,
        customer_id=customer_id,
        supplier_id=_supplier_number(package_supplier_id),
        kind="PQ",
        description=f"Package - Proposal #{proposal.proposal_id}",
        notes=case_notes(proposal=proposal, version=version),
        date_from=_format_date(header.get("start_date") or proposal.start_date),
        date_to=_format_date(header.get("end_date") or proposal.end_date),
        sell_commissionable=_total_sell(version),
        cost_commissionable=0.0,
        planned_margin_pct=planned_margin_pct,
        pax=proposal.pax_total,
        destination=destination.label,
        destination_country=destination.country_code,
        destination_zone=destination.zone,
    )


def build_item_reservation_request(
    *,
    proposal: ProposalRecord,
    version: ProposalVersionRecord,
    item: ProposalItemRecord,
    customer_id: int,
    case_id: int,
    container_reservation_id: Optional[int],
    fallback_supplier_id: str,
) -> ReservationCreateRequest:
    header = _header(version.snapshot_json)
    destination = classify_destination(proposal, version.snapshot_json)
    snapshot_item = _snapshot_item(version.snapshot_json, item.position)
    kind, subkind = reservation_kind(item.service_type)

    cost = item.line_cost_net
    sell = item.line_sell_price
    if item.service_type == "hotel":
        erp_pricing = snapshot_item.get("giav_pricing")
        if isinstance(erp_pricing, dict):
            if erp_pricing.get("giav_total_net") is not None:
                cost = _to_float(erp_pricing["giav_total_net"])
            if erp_pricing.get("giav_total_pvp") is not None:
                sell = _to_float(erp_pricing["giav_total_pvp"])
    if container_reservation_id is not None:
        sell = 0.0

    notes = item.notes_public.strip()
    if container_reservation_id is not None:
        notes = f"{notes}\nPackageContainer:{container_reservation_id}".strip()

    return ReservationCreateRequest(
        case_id=case_id,
        customer_id=customer_id,
        supplier_id=_supplier_number(item.erp_supplier_id or fallback_supplier_id),
        kind=kind,
        subkind=subkind,
        description=item.display_name or "Service",
        notes=notes or None,
        date_from=_format_date(item.start_date or header.get("start_date") or proposal.start_date),
        date_to=_format_date(item.end_date or header.get("end_date") or proposal.end_date),
        sell_commissionable=round(sell, 2),
        cost_commissionable=round(cost, 2),
        pax=item_pax(item=item, snapshot_item=snapshot_item, proposal=proposal),
        destination=destination.label,
        destination_country=destination.country_code,
        destination_zone=destination.zone,
        container_reservation_id=container_reservation_id,
    )


def item_pax(
    *,
    item: ProposalItemRecord,
    snapshot_item: dict[str, Any],
    proposal: ProposalRecord,
) -> int:
    """Occupancy from the room breakdown for hotels, else the item or proposal pax."""
    if item.service_type == "hotel":
        room_pricing = snapshot_item.get("room_pricing")
        if isinstance(room_pricing, dict):
            occupancy = 0
            double = room_pricing.get("double")
            single = room_pricing.get("single")
            if isinstance(double, dict) and double.get("enabled"):
                occupancy += 2 * _to_int(double.get("rooms"))
            if isinstance(single, dict) and single.get("enabled"):
                occupancy += _to_int(single.get("rooms"))
            if occupancy > 0:
                return occupancy
    if item.pax_quantity > 0:
        return item.pax_quantity
    return proposal.pax_total


def _destination_country(proposal: ProposalRecord, snapshot: dict[str, Any]) -> Optional[str]:
    for candidate in (_header(snapshot).get("customer_country"), proposal.customer_country):
        country = str(candidate or "").strip().upper()
        if country:
            return country
    return None


def _header(snapshot: dict[str, Any]) -> dict[str, Any]:
    header = snapshot.get("header")
    return header if isinstance(header, dict) else {}


def _snapshot_item(snapshot: dict[str, Any], position: int) -> dict[str, Any]:
    items = snapshot.get("items")
    if isinstance(items, list) and 0 <= position < len(items) and isinstance(items[position], dict):
        return items[position]
    return {}


def _total_sell(version: ProposalVersionRecord) -> float:
    totals = version.snapshot_json.get("totals")
    if isinstance(totals, dict) and totals.get("totals_sell_price") is not None:
        return round(_to_float(totals["totals_sell_price"]), 2)
    return round(version.totals_sell_price, 2)


def _format_date(value: Any) -> Optional[str]:
    text = str(value or "").strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10]).isoformat()
    except ValueError:
        return None


def _supplier_number(value: str) -> int:
    text = str(value or "").strip()
    if not text.isdigit() or int(text) <= 0:
        raise ValueError(f"INVALID_SUPPLIER_ID:{text}")
    return int(text)


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0
