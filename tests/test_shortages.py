from tests.network_helpers import seed_network


def _report(client, product_code="P1", quantity=6):
    response = client.post(
        "/branchlink/shortages",
        json={"requester_branch_id": "r", "product_code": product_code, "quantity": quantity},
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_report_opens_a_shortage(client, db_session):
    seed_network(db_session)

    report = _report(client)

    assert report["status"] == "OPEN"
    assert report["requested_quantity"] == 6
    assert report["provided_quantity"] is None
    assert report["created_at"] == "2026-01-05T09:00:00"


def test_report_validates_inputs(client, db_session):
    seed_network(db_session)

    zero = client.post(
        "/branchlink/shortages",
        json={"requester_branch_id": "r", "product_code": "P1", "quantity": 0},
    )
    ghost = client.post(
        "/branchlink/shortages",
        json={"requester_branch_id": "r", "product_code": "NOPE", "quantity": 1},
    )

    assert zero.status_code == 422
    assert ghost.status_code == 404
    assert client.get("/branchlink/shortages").json()["rows"] == []


def test_resolve_records_provided_quantity_once(client, db_session, clock):
    seed_network(db_session)
    report = _report(client)
    clock.advance(hours=2)

    resolved = client.post(f"/branchlink/shortages/{report['id']}/resolve", json={"provided_quantity": 4})
    again = client.post(f"/branchlink/shortages/{report['id']}/resolve", json={"provided_quantity": 6})

    assert resolved.status_code == 200
    assert resolved.json()["status"] == "RESOLVED"
    assert resolved.json()["provided_quantity"] == 4
    assert resolved.json()["resolved_at"] == "2026-01-05T11:00:00"
    assert again.status_code == 409
    assert again.json()["code"] == "STATE_CONFLICT"


def test_resolve_does_not_create_transfers(client, db_session):
    seed_network(db_session)
    report = _report(client)

    client.post(f"/branchlink/shortages/{report['id']}/resolve", json={"provided_quantity": 6})

    assert client.get("/branchlink/transfers").json()["rows"] == []


def test_resolve_requires_positive_quantity(client, db_session):
    seed_network(db_session)
    report = _report(client)

    response = client.post(f"/branchlink/shortages/{report['id']}/resolve", json={"provided_quantity": 0})

    assert response.status_code == 422
    listed = client.get("/branchlink/shortages", params={"status": "OPEN"}).json()["rows"]
    assert [row["id"] for row in listed] == [report["id"]]


def test_archive_hides_report_from_requester_list(client, db_session):
    seed_network(db_session)
    kept = _report(client, product_code="P1")
    archived = _report(client, product_code="P2")

    response = client.post(f"/branchlink/shortages/{archived['id']}/archive")

    assert response.json()["archived_by_requester"] is True
    visible = client.get("/branchlink/shortages", params={"include_archived": False}).json()["rows"]
    assert [row["id"] for row in visible] == [kept["id"]]


def test_unknown_report_is_not_found(client, db_session):
    seed_network(db_session)

    response = client.post(
        "/branchlink/shortages/00000000-0000-0000-0000-000000000000/resolve",
        json={"provided_quantity": 1},
    )

    assert response.status_code == 404
