from datetime import date, datetime, timezone

import pytest

from travelsync.core.erp_sync.payloads import (
    build_case_request,
    build_customer_request,
    build_item_reservation_request,
    build_package_request,
    classify_destination,
    item_pax,
    normalize_document,
    reservation_kind,
    split_full_name,
)
from travelsync.core.proposals import ProposalItemRecord, ProposalRecord, ProposalVersionRecord

_NOW = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


def _proposal(**overrides) -> ProposalRecord:
    fields = {
        "proposal_id": "tp_payload",
        "created_by": "agent_7",
        "created_at": _NOW,
        "updated_at": _NOW,
        "customer_name": "Ana Garcia Lopez",
        "customer_email": "ana@example.com",
        "customer_country": "FR",
        "traveler_full_name": "Ana  Garcia   Lopez",
        "traveler_document": " 12 345 678z ",
        "start_date": "2026-05-01",
        "end_date": "2026-05-08",
        "pax_total": 4,
    }
    fields.update(overrides)
    return ProposalRecord(**fields)


def _version(snapshot_json=None, **overrides) -> ProposalVersionRecord:
    fields = {
        "version_id": "tpv_payload",
        "proposal_id": "tp_payload",
        "version_no": 2,
        "public_token": "abc123",
        "snapshot_json": snapshot_json if snapshot_json is not None else {},
        "snapshot_hash": "sha256:x",
        "totals_sell_price": 1000.0,
        "created_by": "agent_7",
        "created_at": _NOW,
    }
    fields.update(overrides)
    return ProposalVersionRecord(**fields)


def _item(**overrides) -> ProposalItemRecord:
    fields = {
        "item_id": "tpi_payload",
        "version_id": "tpv_payload",
        "position": 0,
        "service_type": "hotel",
        "display_name": "Hotel Son Vida",
        "erp_supplier_id": "1300452",
        "pax_quantity": 3,
        "line_cost_net": 690.0,
        "line_sell_price": 880.0,
        "notes_public": "Sea view",
    }
    fields.update(overrides)
    return ProposalItemRecord(**fields)


@pytest.mark.parametrize(
    "country, label, zone",
    [
        ("ES", "Nacional", "ES_Nacional"),
        ("fr", "UnionEuropea", "ES_UnionEuropea"),
        ("US", "RestoMundo", "XX_No_requerido"),
        (None, "RestoMundo", "XX_No_requerido"),
    ],
)
def test_destination_classification(country, label, zone):
    destination = classify_destination(_proposal(customer_country=country), {})

    assert destination.label == label
    assert destination.zone == zone


def test_snapshot_header_country_wins_over_proposal_country():
    destination = classify_destination(
        _proposal(customer_country="US"), {"header": {"customer_country": "es"}}
    )

    assert destination.country_code == "ES"


def test_name_and_document_normalization():
    assert split_full_name("Ana Garcia Lopez") == ("Ana Garcia", "Lopez")
    assert split_full_name("Madonna") == ("Madonna", "Madonna")
    assert split_full_name("  ") == ("", "")
    assert normalize_document(" 12 345 678z ") == "12345678Z"


def test_customer_request_uses_traveler_identity():
    request = build_customer_request(_proposal())

    assert request.document == "12345678Z"
    assert request.first_names == "Ana Garcia"
    assert request.surnames == "Lopez"
    assert request.email == "ana@example.com"
    assert "tp_payload" in request.comments


def test_case_request_carries_dates_destination_and_token_note():
    version = _version({"header": {"start_date": "2026-06-01T00:00:00", "end_date": "bad"}})

    request = build_case_request(
        proposal=_proposal(), version=version, customer_id=55, opened_on=date(2026, 3, 1)
    )

    assert request.customer_id == 55
    assert request.opened_on == "2026-03-01"
    assert request.date_from == "2026-06-01"
    assert request.date_to is None
    assert request.destination_zone == "ES_UnionEuropea"
    assert request.title == "Proposal #tp_payload - Ana Garcia Lopez"
    assert request.internal_notes.endswith("Version:2 Token:abc123")


def test_package_request_sells_snapshot_total_with_planned_margin():
    version = _version({"totals": {"totals_sell_price": "1234.567"}})

    request = build_package_request(
        proposal=_proposal(),
        version=version,
        customer_id=55,
        case_id=66,
        package_supplier_id="1250196",
        planned_margin_pct=20.0,
    )

    assert request.kind == "PQ"
    assert request.supplier_id == 1250196
    assert request.sell_commissionable == 1234.57
    assert request.cost_commissionable == 0.0
    assert request.planned_margin_pct == 20.0
    assert request.pax == 4


def test_package_request_falls_back_to_version_total():
    request = build_package_request(
        proposal=_proposal(),
        version=_version(),
        customer_id=55,
        case_id=66,
        package_supplier_id="1250196",
        planned_margin_pct=20.0,
    )

    assert request.sell_commissionable == 1000.0


def test_hotel_line_uses_erp_totals_and_room_occupancy():
    snapshot_json = {
        "items": [
            {
                "giav_pricing": {"giav_total_net": "700", "giav_total_pvp": 900},
                "room_pricing": {
                    "double": {"enabled": True, "rooms": 2},
                    "single": {"enabled": True, "rooms": 1},
                },
            }
        ]
    }

    request = build_item_reservation_request(
        proposal=_proposal(),
        version=_version(snapshot_json),
        item=_item(),
        customer_id=55,
        case_id=66,
        container_reservation_id=None,
        fallback_supplier_id="1249826",
    )

    assert request.kind == "HT"
    assert request.subkind is None
    assert request.cost_commissionable == 700.0
    assert request.sell_commissionable == 900.0
    assert request.pax == 5
    assert request.notes == "Sea view"
    assert request.container_reservation_id is None


def test_nested_line_sells_at_zero_and_references_container():
    request = build_item_reservation_request(
        proposal=_proposal(),
        version=_version(),
        item=_item(service_type="golf", erp_supplier_id=None),
        customer_id=55,
        case_id=66,
        container_reservation_id=7730001,
        fallback_supplier_id="1249826",
    )

    assert request.kind == "OT"
    assert request.subkind == "Otros"
    assert request.supplier_id == 1249826
    assert request.sell_commissionable == 0.0
    assert request.cost_commissionable == 690.0
    assert request.notes == "Sea view\nPackageContainer:7730001"
    assert request.container_reservation_id == 7730001
    assert request.date_from == "2026-05-01"


def test_invalid_supplier_id_is_rejected():
    with pytest.raises(ValueError) as exc:
        build_item_reservation_request(
            proposal=_proposal(),
            version=_version(),
            item=_item(erp_supplier_id="abc"),
            customer_id=55,
            case_id=66,
            container_reservation_id=None,
            fallback_supplier_id="1249826",
        )
    assert str(exc.value) == "INVALID_SUPPLIER_ID:abc"


def test_reservation_kinds_and_pax_fallbacks():
    assert reservation_kind("transfer") == ("OT", "Traslados")
    assert reservation_kind("spa") == ("OT", "Otros")
    assert item_pax(item=_item(service_type="golf"), snapshot_item={}, proposal=_proposal()) == 3
    assert (
        item_pax(
            item=_item(service_type="extra", pax_quantity=0),
            snapshot_item={},
            proposal=_proposal(),
        )
        == 4
    )
