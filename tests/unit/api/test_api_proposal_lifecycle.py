import re

from fastapi.testclient import TestClient

from travelsync.api.main import app
from travelsync.api.routers.runtime import get_runtime
from tests.factories import golf_item, hotel_item, snapshot, transfer_item


def _create(client: TestClient) -> str:
    response = client.post(
        "/proposals",
        json={"created_by": "agent_7", "title": "Draft", "customer_country": "es"},
    )
    assert response.status_code == 201
    return response.json()["proposal"]["proposal_id"]


def _send(client: TestClient, proposal_id: str, raw_snapshot: dict) -> dict:
    response = client.post(
        f"/proposals/{proposal_id}/versions",
        json={"created_by": "agent_7", "snapshot": raw_snapshot},
    )
    assert response.status_code == 201
    return response.json()


def test_public_acceptance_books_the_proposal_in_the_erp():
    with TestClient(app) as client:
        proposal_id = _create(client)
        sent = _send(client, proposal_id, snapshot(hotel_item(), golf_item(), transfer_item()))
        version = sent["version"]

        assert sent["proposal"]["status"] == "sent"
        assert version["version_no"] == 1
        assert re.fullmatch(r"[0-9a-f]{32}", version["public_token"])
        assert [item["supplier_source"] for item in version["items"]] == [
            "generic",
            "generic",
            "manual",
        ]
        assert sent["preflight"]["ok"] is True

        preflight = client.get(f"/proposals/{proposal_id}/preflight")
        assert preflight.status_code == 200
        assert [warning["code"] for warning in preflight.json()["warnings"]] == [
            "GENERIC_SUPPLIER",
            "GENERIC_SUPPLIER",
        ]

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
        summary = accepted.json()["proposal"]
        assert summary["status"] == "synced"
        assert summary["erp_sync_status"] == "ok"
        assert summary["erp_case_id"] is not None

        records = client.get(f"/proposals/{proposal_id}/sync-records").json()["items"]
        assert len(records) == 4
        assert sorted(record["reservation_kind"] for record in records) == [
            "HT",
            "OT",
            "OT",
            "PQ",
        ]

        detail = client.get(f"/proposals/{proposal_id}").json()
        assert detail["current_version"]["version_id"] == version["version_id"]


def test_lifecycle_errors_map_to_http_statuses():
    with TestClient(app) as client:
        missing = client.get("/proposals/tp_missing")
        assert missing.status_code == 404
        assert missing.json()["detail"] == "PROPOSAL_NOT_FOUND"

        proposal_id = _create(client)
        blocked = client.post(
            f"/proposals/{proposal_id}/versions",
            json={
                "created_by": "agent_7",
                "snapshot": snapshot(golf_item(green_fees_per_person=0)),
            },
        )
        assert blocked.status_code == 422
        assert blocked.json()["detail"]["code"] == "SNAPSHOT_HAS_BLOCKING_ITEMS"
        assert blocked.json()["detail"]["errors"] == [{"index": 0, "code": "MISSING_GREEN_FEES"}]
        assert blocked.json()["detail"]["preflight"]["ok"] is False

        version = _send(client, proposal_id, snapshot(golf_item()))["version"]
        queue = client.post(f"/proposals/{proposal_id}/queue")
        assert queue.status_code == 409
        assert queue.json()["detail"] == "PROPOSAL_NOT_ACCEPTED"

        sync = client.post(f"/proposals/{proposal_id}/sync")
        assert sync.status_code == 409
        assert sync.json()["detail"] == "PROPOSAL_NOT_QUEUED"

        bad_token = client.post(
            f"/proposals/{proposal_id}/accept",
            json={
                "version_id": version["version_id"],
                "accepted_by": "public",
                "public_token": "forged",
                "full_name": "Ana Garcia",
                "document": "12345678Z",
            },
        )
        assert bad_token.status_code == 422
        assert bad_token.json()["detail"] == "INVALID_PUBLIC_TOKEN"

        wrong_version = client.get(f"/proposals/{proposal_id}/versions/tpv_other")
        assert wrong_version.status_code == 404


def test_remote_failure_returns_502_and_retry_resumes(monkeypatch):
    monkeypatch.setenv("ERP_SIMULATOR_FAIL_OPERATIONS", "create_case")
    monkeypatch.setenv("PROPOSAL_SYNC_ON_PUBLIC_ACCEPT", "false")

    with TestClient(app) as client:
        proposal_id = _create(client)
        version = _send(client, proposal_id, snapshot(golf_item()))["version"]
        accepted = client.post(
            f"/proposals/{proposal_id}/accept",
            json={
                "version_id": version["version_id"],
                "full_name": "Ana Garcia",
                "document": "12345678Z",
            },
        )
        assert accepted.json()["proposal"]["status"] == "accepted"
        assert client.post(f"/proposals/{proposal_id}/queue").json()["proposal"]["status"] == (
            "queued"
        )

        failed = client.post(f"/proposals/{proposal_id}/sync")
        assert failed.status_code == 502
        assert failed.json()["detail"]["code"] == "ERP_CALL_FAILED:create_case"
        assert failed.json()["detail"]["result"]["status"] == "error"
        assert failed.json()["detail"]["result"]["erp_client_id"] is not None
        summary = client.get(f"/proposals/{proposal_id}").json()["proposal"]
        assert summary["status"] == "error"
        assert summary["erp_sync_error"] == "ERP_CALL_FAILED:create_case"

        get_runtime().erp_client.recover()
        retried = client.post(f"/proposals/{proposal_id}/sync/retry")
        assert retried.status_code == 200
        assert retried.json()["status"] == "ok"
        assert retried.json()["erp_client_id"] == failed.json()["detail"]["result"]["erp_client_id"]


def test_transitions_and_listing():
    with TestClient(app) as client:
        draft_id = _create(client)
        sent_id = _create(client)
        _send(client, sent_id, snapshot(transfer_item()))

        revoked = client.post(
            f"/proposals/{draft_id}/transitions", json={"event": "REVOKE", "actor_id": "agent_7"}
        )
        again = client.post(
            f"/proposals/{draft_id}/transitions", json={"event": "REVOKE", "actor_id": "agent_7"}
        )
        unknown_event = client.post(
            f"/proposals/{sent_id}/transitions", json={"event": "ARCHIVE", "actor_id": "agent_7"}
        )
        sent = client.get("/proposals", params={"status": "sent"})

        assert revoked.json()["proposal"]["status"] == "revoked"
        assert again.status_code == 409
        assert again.json()["detail"] == "INVALID_TRANSITION"
        assert unknown_event.status_code == 422
        assert [row["proposal_id"] for row in sent.json()["items"]] == [sent_id]


def test_snapshot_resolution_dry_run():
    with TestClient(app) as client:
        response = client.post("/snapshots/resolve", json=snapshot(hotel_item(), transfer_item()))
        listed = client.get("/proposals")

    assert response.status_code == 200
    body = response.json()
    assert body["errors"] == []
    assert body["snapshot"]["items"][0]["erp_supplier_name"] == "Proveedores varios"
    assert [entry["index"] for entry in body["logs"]["generic"]] == [0]
    assert listed.json()["items"] == []


def test_audit_events_listing():
    with TestClient(app) as client:
        proposal_id = _create(client)
        _send(client, proposal_id, snapshot(transfer_item()))
        client.post(
            f"/proposals/{proposal_id}/transitions",
            json={"event": "MARK_LOST", "actor_id": "agent_9"},
        )

        listed = client.get(f"/proposals/{proposal_id}/events")
        missing = client.get("/proposals/tp_missing/events")

        assert listed.status_code == 200
        body = listed.json()
        assert body["proposal_id"] == proposal_id
        assert [event["event_type"] for event in body["events"]] == [
            "CREATED",
            "VERSION_SENT",
            "MARKED_LOST",
        ]
        assert body["events"][-1]["actor_id"] == "agent_9"
        assert body["events"][-1]["to_status"] == "lost"
        assert missing.status_code == 404
        assert missing.json()["detail"] == "PROPOSAL_NOT_FOUND"
