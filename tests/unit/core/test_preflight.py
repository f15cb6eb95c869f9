from datetime import datetime, timezone

import pytest

from travelsync.core.preflight import PreflightVersionNotFoundError
from travelsync.core.proposals import ProposalItemRecord, ProposalVersionRecord
from tests.factories import (
    GOLF_OBJECT_ID,
    HOTEL_OBJECT_ID,
    SON_GUAL_SUPPLIER_ID,
    golf_item,
    hotel_item,
    mapping,
    snapshot,
    transfer_item,
)

_CREATED_AT = datetime(2026, 1, 15, tzinfo=timezone.utc)


def _legacy_version(harness, *items: ProposalItemRecord) -> str:
    version = ProposalVersionRecord(
        version_id="tpv_legacy",
        proposal_id="tp_legacy",
        version_no=1,
        public_token="token",
        snapshot_json={"items": [{"service_type": item.service_type} for item in items]},
        snapshot_hash="sha256:legacy",
        created_by="agent_7",
        created_at=_CREATED_AT,
    )
    harness.proposals.create_version(version=version, items=list(items))
    return version.version_id


def _legacy_item(position: int, **overrides) -> ProposalItemRecord:
    fields = {
        "item_id": f"tpi_legacy_{position}",
        "version_id": "tpv_legacy",
        "position": position,
        "service_type": "hotel",
        "display_name": f"Item {position}",
    }
    fields.update(overrides)
    return ProposalItemRecord(**fields)


def test_snapshot_version_reaggregates_stored_diagnostics(harness):
    proposal_id = harness.create_draft()
    sent = harness.send(proposal_id, snapshot(hotel_item(), golf_item(), transfer_item()))

    result = harness.preflight.check_version(version_id=sent.version.version_id)

    assert result.source == "snapshot"
    assert result.ok is True
    assert [message.code for message in result.warnings] == [
        "GENERIC_SUPPLIER",
        "GENERIC_SUPPLIER",
    ]
    assert result.blocking == []


def test_snapshot_verdict_does_not_follow_later_mapping_changes(harness):
    proposal_id = harness.create_draft()
    sent = harness.send(proposal_id, snapshot(golf_item()))
    harness.map_default_catalog()

    result = harness.preflight.check_version(version_id=sent.version.version_id)

    assert [message.code for message in result.warnings] == ["GENERIC_SUPPLIER"]


def test_legacy_version_is_checked_against_current_mappings(harness):
    harness.mappings.upsert_mapping(
        mapping(
            object_type="golf",
            object_id=GOLF_OBJECT_ID,
            supplier_id=harness.defaults.supplier_id,
            supplier_name=harness.defaults.supplier_name,
        )
    )
    version_id = _legacy_version(
        harness,
        _legacy_item(0, object_type="hotel", object_id=HOTEL_OBJECT_ID),
        _legacy_item(1, service_type="golf", object_type="golf", object_id=GOLF_OBJECT_ID),
        _legacy_item(2, object_type="manual", object_id=0),
        _legacy_item(
            3,
            service_type="golf",
            object_type="manual",
            erp_supplier_id=SON_GUAL_SUPPLIER_ID,
            erp_supplier_name=" Son Gual ",
        ),
        _legacy_item(4, service_type="transfer", object_type="manual"),
    )

    result = harness.preflight.check_version(version_id=version_id)

    assert result.source == "legacy"
    assert result.ok is False
    assert [(message.item_id, message.code) for message in result.warnings] == [
        ("tpi_legacy_0", "missing_active_mapping_fallback_generic_supplier"),
        ("tpi_legacy_1", "generic_supplier"),
        ("tpi_legacy_3", "manual_item_with_supplier"),
    ]
    assert [(message.item_id, message.code) for message in result.blocking] == [
        ("tpi_legacy_2", "missing_supplier_for_manual_item"),
    ]
    fallback = result.warnings[0].details["fallback"]
    assert fallback == {
        "erp_supplier_id": harness.defaults.supplier_id,
        "erp_supplier_name": harness.defaults.supplier_name,
        "status": "needs_review",
        "match_type": "auto_generic",
    }
    assert result.warnings[2].details["supplier"]["erp_supplier_name"] == "Son Gual"
    assert result.blocking[0].title == "Item 2"


def test_unknown_version_raises_lookup_error(harness):
    with pytest.raises(PreflightVersionNotFoundError) as exc:
        harness.preflight.check_version(version_id="tpv_missing")
    assert str(exc.value) == "PROPOSAL_VERSION_NOT_FOUND"
