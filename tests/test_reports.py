from tests.network_helpers import approve, create_request, move_to_delivered, seed_network


def test_empty_dashboard(client, db_session):
    seed_network(db_session)

    stats = client.get("/branchlink/reports/dashboard").json()

    assert stats["total"] == 0
    assert stats["top_products"] == []


def test_dashboard_counts_requests_by_stage(client, db_session, clock):
    seed_network(
        db_session,
        stock={("d-near", "P1"): 50, ("d-near", "P2"): 50, ("d-mid", "P1"): 50, ("d-far", "P1"): 50},
    )
    completed = create_request(client, product_code="P1", quantity=5)
    approve(client, completed["id"], 5)
    move_to_delivered(client, completed["id"])
    client.post(f"/branchlink/transfers/{completed['id']}/receive", json={"receipt_number": "RC-1"})

    partial = create_request(client, product_code="P1", quantity=5)
    approve(client, partial["id"], 3)

    rejected = create_request(client, product_code="P1", quantity=5)
    client.post(f"/branchlink/transfers/{rejected['id']}/reject", json={"reason": "no"})

    create_request(client, product_code="P2", quantity=2)

    stats = client.get("/branchlink/reports/dashboard").json()

    assert stats["total"] == 4
    assert stats["completed"] == 1
    assert stats["in_transit"] == 1
    assert stats["pending"] == 1
    assert stats["rejected"] == 1
    assert stats["expired"] == 0
    assert stats["cancelled"] == 0
    assert stats["pending_audits"] == 1
    assert stats["top_products"][0] == {"product_code": "P1", "request_count": 3, "requested_quantity": 15}
    assert stats["top_products"][1]["product_code"] == "P2"


def test_dashboard_does_not_expire_anything(client, db_session, clock):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    create_request(client, quantity=5)
    clock.advance(hours=1)

    stats = client.get("/branchlink/reports/dashboard").json()

    assert stats["pending"] == 1
    assert stats["expired"] == 0


def test_branch_performance_averages_response_time(client, db_session, clock):
    seed_network(db_session, stock={("d-near", "P1"): 50, ("d-near", "P2"): 50})
    first = create_request(client, product_code="P1", quantity=5)
    clock.advance(minutes=4)
    approve(client, first["id"], 5)
    second = create_request(client, product_code="P2", quantity=5)
    clock.advance(minutes=7)
    client.post(f"/branchlink/transfers/{second['id']}/reject", json={"reason": "no"})

    rows = {row["branch_id"]: row for row in client.get("/branchlink/reports/branch-performance").json()["rows"]}

    assert rows["d-near"]["total_received"] == 2
    assert rows["d-near"]["responded"] == 2
    assert rows["d-near"]["avg_response_minutes"] == 5.5
    assert rows["d-mid"]["total_received"] == 0
    assert rows["d-mid"]["avg_response_minutes"] is None
    assert list(rows) == ["d-far", "d-mid", "d-near", "r"]
