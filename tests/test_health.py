from tests.network_helpers import create_request, seed_network


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["trace_id"]


def test_trace_id_is_propagated(client):
    response = client.get("/health", headers={"X-Trace-ID": "trace-123"})
    assert response.headers["X-Trace-ID"] == "trace-123"
    assert response.json()["trace_id"] == "trace-123"


def test_ready_checks_store(client):
    response = client.get("/ready")
    assert response.status_code == 200
    assert response.json()["status"] == "ready"
    assert response.json()["scheduler"] == []


def test_metrics_endpoint_exposes_transfer_counters(client):
    client.get("/health")
    response = client.get("/branchlink/ops/metrics")
    assert response.status_code == 200
    body = response.text
    assert "http_requests_total" in body
    assert "transfer_transitions_total" in body


def test_metrics_report_the_request_backlog(client, db_session):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    create_request(client, quantity=5)
    cancelled = create_request(client, product_code="P1", quantity=3, requester="d-mid")
    client.post(f"/branchlink/transfers/{cancelled['id']}/cancel")
    client.post(
        "/branchlink/shortages",
        json={"requester_branch_id": "r", "product_code": "P2", "quantity": 4},
    )

    body = client.get("/branchlink/ops/metrics").text

    assert 'transfer_requests_by_status{status="PENDING"} 1.0' in body
    assert 'transfer_requests_by_status{status="CANCELLED"} 1.0' in body
    assert 'transfer_requests_by_status{status="COMPLETED"} 0.0' in body
    assert "shortage_reports_open 1.0" in body
