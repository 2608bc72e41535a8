from datetime import datetime

from app.branchlink.db.models import Branch, Product, StockEntry, User, UserRole

# requester sits at the origin; donors line up due north of it
REQUESTER = ("r", "Requester", 30.000, 31.200)
NEAR = ("d-near", "Near donor", 30.027, 31.200)
MID = ("d-mid", "Mid donor", 30.054, 31.200)
FAR = ("d-far", "Far donor", 30.090, 31.200)

DRIVER_ID = "driver1"


def seed_network(db_session, *, branches=(REQUESTER, NEAR, MID, FAR), stock=None, products=("P1", "P2")):
    now = datetime(2026, 1, 1, 0, 0, 0)
    for branch_id, name, latitude, longitude in branches:
        db_session.add(Branch(id=branch_id, name=name, latitude=latitude, longitude=longitude, created_at=now))
    for code in products:
        db_session.add(Product(code=code, name=f"Product {code}", barcode=f"622{code}", created_at=now))
    for (branch_id, product_code), quantity in (stock or {}).items():
        db_session.add(StockEntry(branch_id=branch_id, product_code=product_code, quantity=quantity, updated_at=now))
    db_session.add(User(id=DRIVER_ID, username=DRIVER_ID, name="Driver One", role=UserRole.DELIVERY, created_at=now))
    db_session.add(User(id="dist", username="dist", name="Distribution", role=UserRole.DISTRIBUTION, created_at=now))
    db_session.commit()


def stock_of(client, branch_id: str, product_code: str) -> int:
    response = client.get(f"/branchlink/stock/{branch_id}/{product_code}")
    assert response.status_code == 200
    return response.json()["quantity"]


def create_request(client, product_code: str = "P1", quantity: int = 10, requester: str = "r") -> dict:
    response = client.post(
        "/branchlink/transfers",
        json={"requester_branch_id": requester, "items": [{"product_code": product_code, "quantity": quantity}]},
    )
    assert response.status_code == 201, response.text
    line = response.json()["lines"][0]
    assert line["outcome"] == "CREATED", line
    return line["request"]


def approve(client, request_id: str, issued_quantity: int, issue_number: str = "IS-1"):
    return client.post(
        f"/branchlink/transfers/{request_id}/approve",
        json={"issue_number": issue_number, "issued_quantity": issued_quantity},
    )


def move_to_delivered(client, request_id: str) -> None:
    assert client.post(f"/branchlink/transfers/{request_id}/assign-driver", json={"driver_id": DRIVER_ID}).status_code == 200
    assert client.post(f"/branchlink/transfers/{request_id}/pickup").status_code == 200
    assert client.post(f"/branchlink/transfers/{request_id}/deliver").status_code == 200
