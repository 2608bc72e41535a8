import json
import logging
from types import SimpleNamespace

from starlette.requests import Request
from starlette.responses import Response

from app.branchlink.core.db_timing import StoreTiming
from app.branchlink.middleware.observability import build_request_log_payload
from tests.network_helpers import create_request, seed_network


def _events(caplog, name):
    payloads = []
    for record in caplog.records:
        try:
            payload = json.loads(record.getMessage())
        except ValueError:
            continue
        if payload.get("event") == name:
            payloads.append(payload)
    return payloads


def test_build_request_log_payload():
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/branchlink/transfers/abc/approve",
        "headers": [],
        "route": SimpleNamespace(path="/branchlink/transfers/{request_id}/approve"),
    }
    request = Request(scope)
    request.state.trace_id = "trace-1"
    request.state.actor = "dist"
    request.state.error_code = None
    response = Response(status_code=200)

    payload = build_request_log_payload(
        request=request,
        response=response,
        latency_ms=12.3456,
        timing=StoreTiming(elapsed_ms=4.5678, queries=3),
    )

    assert payload["trace_id"] == "trace-1"
    assert payload["actor"] == "dist"
    assert payload["route"] == "/branchlink/transfers/{request_id}/approve"
    assert payload["method"] == "POST"
    assert payload["status_code"] == 200
    assert payload["latency_ms"] == 12.35
    assert payload["db_time_ms"] == 4.57
    assert payload["db_queries"] == 3


def test_request_line_counts_store_queries(client, db_session, caplog):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    caplog.set_level(logging.INFO, logger="branchlink.request")

    client.get("/branchlink/stock/d-near/P1", headers={"X-Trace-ID": "trace-stock"})

    lines = [line for line in _events(caplog, "http_request") if line["trace_id"] == "trace-stock"]
    assert len(lines) == 1
    assert lines[0]["route"] == "/branchlink/stock/{branch_id}/{product_code}"
    assert lines[0]["db_queries"] >= 1


def test_transitions_are_logged_with_actor_and_deltas(client, db_session, caplog):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    caplog.set_level(logging.INFO)
    request = create_request(client, quantity=6)

    client.post(
        f"/branchlink/transfers/{request['id']}/reject",
        json={"reason": "no stock on shelf"},
        headers={"X-Actor-Id": "mgr-near", "X-Trace-ID": "trace-reject"},
    )

    transitions = [line for line in _events(caplog, "transfer_transition") if line["action"] == "reject"]
    assert len(transitions) == 1
    assert transitions[0]["actor"] == "mgr-near"
    assert transitions[0]["trace_id"] == "trace-reject"
    assert transitions[0]["from_status"] == "PENDING"
    assert transitions[0]["to_status"] == "REJECTED"
    assert transitions[0]["stock_deltas"] == [{"branch_id": "d-near", "product_code": "P1", "delta": 6}]


def test_conflicts_are_logged_as_warnings(client, db_session, caplog):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    caplog.set_level(logging.INFO)
    request = create_request(client, quantity=6)

    client.post(f"/branchlink/transfers/{request['id']}/deliver")

    conflicts = [
        record
        for record in caplog.records
        if record.levelno == logging.WARNING and "transfer_state_conflict" in record.getMessage()
    ]
    assert len(conflicts) == 1
