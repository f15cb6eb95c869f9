import os

import pytest
from fastapi.testclient import TestClient

import travelsync.infrastructure.erp_sync.postgres as sync_postgres_module
import travelsync.infrastructure.mappings.postgres as mapping_postgres_module
import travelsync.infrastructure.proposals.postgres as proposal_postgres_module
from travelsync.api.main import app
from travelsync.api.routers.runtime import build_runtime, reset_runtime_for_tests
from travelsync.api.routers.runtime_config import Repositories
from travelsync.infrastructure.erp import DeterministicErpSimulator
from travelsync.infrastructure.erp_sync import PostgresSyncRecordRepository
from travelsync.infrastructure.mappings import PostgresSupplierMappingRepository
from travelsync.infrastructure.proposals import PostgresProposalRepository
from tests.factories import golf_item, hotel_item, snapshot, transfer_item
from tests.unit.infrastructure.test_postgres_repositories import _build, _FakeConnection

_DSN = os.getenv("TRAVELSYNC_POSTGRES_INTEGRATION_DSN", "").strip()


@pytest.fixture
def repositories(monkeypatch: pytest.MonkeyPatch) -> Repositories:
    if _DSN:
        return Repositories(
            proposals=PostgresProposalRepository(dsn=_DSN),
            mappings=PostgresSupplierMappingRepository(dsn=_DSN),
            sync_records=PostgresSyncRecordRepository(dsn=_DSN),
        )
    connection = _FakeConnection()
    proposals, _ = _build(
        monkeypatch, proposal_postgres_module, PostgresProposalRepository, connection
    )
    mappings, _ = _build(
        monkeypatch, mapping_postgres_module, PostgresSupplierMappingRepository, connection
    )
    sync_records, _ = _build(
        monkeypatch, sync_postgres_module, PostgresSyncRecordRepository, connection
    )
    return Repositories(proposals=proposals, mappings=mappings, sync_records=sync_records)


def test_public_accept_sync_failure_then_retry_over_postgres(repositories: Repositories):
    erp = DeterministicErpSimulator(seed=9, fail_operations=["set_reservation_nesting"])
    reset_runtime_for_tests(build_runtime(repositories=repositories, erp_client=erp))

    with TestClient(app) as client:
        mapped = client.put(
            "/erp/mappings",
            json={"object_type": "hotel", "object_id": 412, "entity_id": "1300452"},
        )
        assert mapped.status_code == 200

        proposal_id = client.post("/proposals", json={"created_by": "agent_7"}).json()[
            "proposal"
        ]["proposal_id"]
        sent = client.post(
            f"/proposals/{proposal_id}/versions",
            json={
                "created_by": "agent_7",
                "snapshot": snapshot(hotel_item(), golf_item(), transfer_item()),
            },
        ).json()
        version = sent["version"]
        assert version["items"][0]["erp_supplier_id"] == "1300452"
        assert version["items"][1]["supplier_source"] == "generic"

        accepted = client.post(
            f"/proposals/{proposal_id}/accept",
            json={
                "version_id": version["version_id"],
                "accepted_by": "public",
                "public_token": version["public_token"],
                "full_name": "Ana Garcia Lopez",
                "document": "12345678Z",
            },
        )
        assert accepted.status_code == 200
        assert accepted.json()["proposal"]["status"] == "error"
        assert accepted.json()["proposal"]["erp_sync_error"] == (
            "ERP_CALL_FAILED:set_reservation_nesting"
        )

        partial = client.get(f"/proposals/{proposal_id}/sync-records").json()["items"]
        assert sorted(record["nesting_status"] for record in partial) == [
            "not_required",
            "pending",
        ]

        erp.recover()
        retried = client.post(f"/proposals/{proposal_id}/sync/retry")
        assert retried.status_code == 200
        assert retried.json()["status"] == "ok"
        assert retried.json()["reservations_created"] == 2

        repeated = client.post(f"/proposals/{proposal_id}/sync/retry")
        assert repeated.json()["reservations_created"] == 0

        records = client.get(f"/proposals/{proposal_id}/sync-records").json()["items"]
        line_records = [record for record in records if record["item_id"] is not None]
        assert len(records) == 4
        assert [record["nesting_status"] for record in line_records] == ["nested"] * 3
        assert erp.calls["create_reservation"] == 4
        assert erp.calls["create_case"] == 1

        summary = client.get(f"/proposals/{proposal_id}").json()["proposal"]
        assert summary["status"] == "synced"
        assert summary["erp_package_reservation_id"] is not None

        events = client.get(f"/proposals/{proposal_id}/events").json()["events"]
        event_types = [event["event_type"] for event in events]
        assert event_types.count("SYNC_STARTED") == 2
        assert event_types.count("SYNC_SUCCEEDED") == 1
        assert {"CREATED", "VERSION_SENT", "ACCEPTED", "QUEUED", "SYNC_FAILED"} <= set(
            event_types
        )
        failed = next(event for event in events if event["event_type"] == "SYNC_FAILED")
        assert failed["details"] == {"error": "ERP_CALL_FAILED:set_reservation_nesting"}
