from tests.network_helpers import approve, create_request, move_to_delivered, seed_network, stock_of


def _partial(client, db_session, issued=7):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    request = create_request(client, quantity=10)
    approve(client, request["id"], issued)
    return request


def _resolve(client, request_id, resolution, note=None):
    return client.post(
        f"/branchlink/discrepancies/{request_id}/resolve",
        json={"resolution": resolution, "note": note},
    )


def test_partial_approval_shows_up_as_pending_audit(client, db_session):
    request = _partial(client, db_session)

    rows = client.get("/branchlink/discrepancies").json()["rows"]

    assert [row["id"] for row in rows] == [request["id"]]
    assert rows[0]["issued_quantity"] == 7
    assert client.get("/branchlink/discrepancies/resolved").json()["rows"] == []


def test_confirm_deficit_closes_audit_without_moving_stock(client, db_session, clock):
    request = _partial(client, db_session)
    assert stock_of(client, "d-near", "P1") == 13

    clock.advance(minutes=5)
    response = _resolve(client, request["id"], "CONFIRMED_DEFICIT", "  two boxes missing on shelf  ")

    assert response.status_code == 200
    body = response.json()
    assert body["inventory_status"] == "CONFIRMED_DEFICIT"
    assert body["inventory_note"] == "two boxes missing on shelf"
    assert body["inventory_resolved_at"] == "2026-01-05T09:05:00"
    assert body["status"] == "DISTRIBUTION"
    assert stock_of(client, "d-near", "P1") == 13
    assert client.get("/branchlink/discrepancies").json()["rows"] == []
    resolved = client.get("/branchlink/discrepancies/resolved").json()["rows"]
    assert [row["id"] for row in resolved] == [request["id"]]


def test_item_found_does_not_touch_stock(client, db_session):
    request = _partial(client, db_session, issued=4)

    response = _resolve(client, request["id"], "ITEM_FOUND")

    assert response.json()["inventory_status"] == "ITEM_FOUND"
    assert response.json()["inventory_note"] is None
    assert stock_of(client, "d-near", "P1") == 16


def test_resolution_is_final(client, db_session):
    request = _partial(client, db_session)
    _resolve(client, request["id"], "ITEM_FOUND")

    again = _resolve(client, request["id"], "CONFIRMED_DEFICIT")

    assert again.status_code == 409
    assert again.json()["code"] == "STATE_CONFLICT"
    current = client.get(f"/branchlink/transfers/{request['id']}").json()
    assert current["inventory_status"] == "ITEM_FOUND"


def test_full_approval_has_nothing_to_resolve(client, db_session):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    request = create_request(client, quantity=10)
    approve(client, request["id"], 10)

    response = _resolve(client, request["id"], "ITEM_FOUND")

    assert response.status_code == 409
    assert client.get("/branchlink/discrepancies").json()["rows"] == []


def test_audit_can_close_after_the_delivery_finished(client, db_session):
    request = _partial(client, db_session)
    move_to_delivered(client, request["id"])
    client.post(f"/branchlink/transfers/{request['id']}/receive", json={"receipt_number": "RC-1"})

    response = _resolve(client, request["id"], "CONFIRMED_DEFICIT")

    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"
    assert stock_of(client, "r", "P1") == 7


def test_unknown_resolution_is_rejected(client, db_session):
    request = _partial(client, db_session)

    response = _resolve(client, request["id"], "LOST")

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"
