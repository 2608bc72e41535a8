import pytest

from app.branchlink.core.error_catalog import AppError
from app.branchlink.services.stock_ledger import StockLedger
from tests.network_helpers import seed_network, stock_of


def test_absent_entry_reads_as_zero(db_session, clock):
    seed_network(db_session)
    assert StockLedger(db_session, clock).get("r", "P1") == 0


def test_adjust_floors_at_zero(db_session, clock):
    seed_network(db_session, stock={("d-near", "P1"): 4})
    ledger = StockLedger(db_session, clock)

    ledger.adjust("d-near", "P1", -10)
    db_session.commit()

    assert ledger.get("d-near", "P1") == 0


def test_adjust_creates_missing_entry(db_session, clock):
    seed_network(db_session)
    ledger = StockLedger(db_session, clock)

    ledger.adjust("r", "P1", 7)
    ledger.adjust("r", "P2", -3)
    db_session.commit()

    assert ledger.get("r", "P1") == 7
    assert ledger.get("r", "P2") == 0


def test_set_rejects_negative_quantity(db_session, clock):
    seed_network(db_session)
    with pytest.raises(AppError) as excinfo:
        StockLedger(db_session, clock).set("r", "P1", -1)
    assert excinfo.value.error.code == "VALIDATION_ERROR"


def test_set_overwrites_and_remove_clears(db_session, clock):
    seed_network(db_session, stock={("r", "P1"): 5})
    ledger = StockLedger(db_session, clock)

    ledger.set("r", "P1", 42)
    db_session.commit()
    assert ledger.get("r", "P1") == 42

    assert ledger.remove("r", "P1") is True
    db_session.commit()
    assert ledger.get("r", "P1") == 0
    assert ledger.remove("r", "P1") is False


def test_stock_endpoints(client, db_session):
    seed_network(db_session, stock={("d-near", "P1"): 5})

    adjusted = client.post("/branchlink/stock/d-near/P1/adjust", json={"delta": -8})
    assert adjusted.status_code == 200
    assert adjusted.json()["quantity"] == 0

    put = client.put("/branchlink/stock/d-near/P1", json={"quantity": 12})
    assert put.status_code == 200
    assert stock_of(client, "d-near", "P1") == 12

    listing = client.get("/branchlink/stock", params={"product_code": "P1"})
    assert listing.status_code == 200
    assert listing.json()["total_units"] == 12

    deleted = client.delete("/branchlink/stock/d-near/P1")
    assert deleted.status_code == 204
    assert stock_of(client, "d-near", "P1") == 0
    assert client.delete("/branchlink/stock/d-near/P1").status_code == 404


def test_stock_write_requires_known_branch_and_product(client, db_session):
    seed_network(db_session)

    unknown_branch = client.put("/branchlink/stock/nowhere/P1", json={"quantity": 1})
    assert unknown_branch.status_code == 404
    assert unknown_branch.json()["code"] == "NOT_FOUND"

    negative = client.put("/branchlink/stock/r/P1", json={"quantity": -1})
    assert negative.status_code == 422
    assert negative.json()["code"] == "VALIDATION_ERROR"
