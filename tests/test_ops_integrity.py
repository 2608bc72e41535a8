import json
import os

from sqlalchemy import update

from app.branchlink.db.models import StockEntry, TransferRequest
from app.ops.integrity_checks import resolve_branches, run_integrity_checks
from app.ops.integrity_scan import main, run_scan
from tests.network_helpers import approve, create_request, move_to_delivered, seed_network


def _check_ids(findings):
    return sorted(finding.check_id for finding in findings)


def test_healthy_network_has_no_findings(client, db_session, clock):
    seed_network(db_session, stock={("d-near", "P1"): 50, ("d-near", "P2"): 50})
    full = create_request(client, product_code="P1", quantity=5)
    approve(client, full["id"], 5)
    move_to_delivered(client, full["id"])
    client.post(f"/branchlink/transfers/{full['id']}/receive", json={"receipt_number": "RC-1"})
    partial = create_request(client, product_code="P2", quantity=5)
    approve(client, partial["id"], 2)
    client.post(
        f"/branchlink/discrepancies/{partial['id']}/resolve",
        json={"resolution": "CONFIRMED_DEFICIT"},
    )
    pending = create_request(client, product_code="P1", quantity=5)
    client.post(f"/branchlink/transfers/{pending['id']}/cancel")
    client.post(f"/branchlink/transfers/{pending['id']}/archive")

    assert run_integrity_checks(db_session, None, now=clock()) == []


def test_overdue_pending_request_is_a_warning(client, db_session, clock):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    create_request(client, quantity=5)
    clock.advance(minutes=45)

    findings = run_integrity_checks(db_session, None, now=clock())

    assert _check_ids(findings) == ["pending_past_deadline"]
    assert findings[0].severity == "WARN"
    assert findings[0].branch_id == "r"


def test_corrupted_rows_are_flagged(client, db_session, clock):
    seed_network(db_session, stock={("d-near", "P1"): 20, ("d-near", "P2"): 20})
    over = create_request(client, product_code="P1", quantity=5)
    approve(client, over["id"], 5)
    unaudited = create_request(client, product_code="P2", quantity=5)
    approve(client, unaudited["id"], 3)

    db_session.execute(update(TransferRequest).where(TransferRequest.product_code == "P1").values(issued_quantity=9))
    db_session.execute(
        update(TransferRequest)
        .where(TransferRequest.product_code == "P2")
        .values(inventory_status=None, attempted_branch_ids=["d-mid"])
    )
    db_session.add(StockEntry(branch_id="closed-branch", product_code="P1", quantity=4, updated_at=clock()))
    db_session.commit()

    findings = run_integrity_checks(db_session, None, now=clock())

    assert _check_ids(findings) == [
        "donor_not_attempted",
        "issued_exceeds_requested",
        "orphan_stock",
        "shortfall_without_audit",
    ]


def test_skipped_workflow_fields_are_flagged(client, db_session, clock):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    request = create_request(client, quantity=5)
    db_session.execute(update(TransferRequest).values(status="PICKED_UP"))
    db_session.commit()

    findings = run_integrity_checks(db_session, None, now=clock())

    assert _check_ids(findings) == ["transfer_fsm"]
    assert findings[0].entity_id == request["id"]
    assert "driver missing" in findings[0].details["problems"]


def test_branch_filter_limits_the_scan(client, db_session, clock):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    create_request(client, quantity=5)
    clock.advance(minutes=45)

    assert resolve_branches("all") is None
    assert run_integrity_checks(db_session, resolve_branches("d-far"), now=clock()) == []
    assert len(run_integrity_checks(db_session, resolve_branches("d-near"), now=clock())) == 1


def test_scan_cli_reports_json_and_fails_on_critical(client, db_session, capsys):
    seed_network(db_session, stock={("d-near", "P1"): 20})
    request = create_request(client, quantity=5)
    approve(client, request["id"], 5)
    database_url = os.environ["DATABASE_URL"]

    assert run_scan("all", "json", True, database_url=database_url) == 0
    clean = json.loads(capsys.readouterr().out)
    assert clean["summary"]["total"] == 0

    db_session.execute(update(TransferRequest).values(issued_quantity=8))
    db_session.commit()

    assert main(["--format", "json", "--fail-on-critical", "--database-url", database_url]) == 1
    report = json.loads(capsys.readouterr().out)
    assert report["summary"]["critical"] == 1
    assert report["findings"][0]["check_id"] == "issued_exceeds_requested"

    assert run_scan("all", "text", False, database_url=database_url) == 0
    assert "CRITICAL: 1" in capsys.readouterr().out
