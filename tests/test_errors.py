from sqlalchemy.exc import OperationalError

from tests.network_helpers import seed_network


def _raise_store_error(message):
    def handler():
        raise OperationalError("UPDATE transfer_requests", {}, Exception(message))

    return handler


def test_not_found_uses_error_envelope(client):
    response = client.get("/branchlink/branches/missing", headers={"X-Trace-ID": "trace-404"})

    assert response.status_code == 404
    assert response.json() == {
        "code": "NOT_FOUND",
        "message": "Resource not found",
        "details": {"message": "branch not found", "id": "missing"},
        "trace_id": "trace-404",
    }


def test_request_validation_lists_fields(client):
    response = client.post("/branchlink/transfers", json={"items": []})

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert "requester_branch_id" in [error["field"] for error in body["details"]["errors"]]


def test_state_conflict_carries_current_status(client, db_session):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    created = client.post(
        "/branchlink/transfers",
        json={"requester_branch_id": "r", "items": [{"product_code": "P1", "quantity": 5}]},
    ).json()["lines"][0]["request"]

    response = client.post(f"/branchlink/transfers/{created['id']}/pickup")

    assert response.status_code == 409
    details = response.json()["details"]
    assert details["status"] == "PENDING"
    assert details["action"] == "confirm_pickup"
    assert details["request_id"] == created["id"]


def test_lock_contention_maps_to_lock_timeout(client):
    client.app.add_api_route("/__test__/locked", _raise_store_error("database is locked"))

    response = client.get("/__test__/locked")

    assert response.status_code == 409
    assert response.json()["code"] == "LOCK_TIMEOUT"


def test_store_failure_is_reported_and_announced(client, notifier):
    client.app.add_api_route("/__test__/down", _raise_store_error("connection refused"))

    response = client.get("/__test__/down")

    assert response.status_code == 503
    assert response.json()["code"] == "STORE_UNAVAILABLE"
    assert response.json()["details"] == {"type": "OperationalError"}
    errors = [entry for entry in notifier.active() if entry.severity == "error"]
    assert len(errors) == 1
    assert "not saved" in errors[0].message
