from app.branchlink.db.models import UserRole
from app.branchlink.db.seed import DEMO_BRANCHES, DEMO_PRODUCTS, run_seed


def test_seed_loads_demo_network_once(client, db_session):
    assert run_seed(db_session) is True
    assert run_seed(db_session) is False

    branches = client.get("/branchlink/branches").json()
    products = client.get("/branchlink/products").json()
    assert [branch["id"] for branch in branches] == [branch[0] for branch in DEMO_BRANCHES]
    assert [product["code"] for product in products] == [product[0] for product in DEMO_PRODUCTS]
    assert next(p for p in products if p["code"] == "1004")["requires_refrigeration"] is True


def test_seed_stock_is_reproducible(client, db_session):
    run_seed(db_session, stock_seed=3)

    rows = client.get("/branchlink/stock").json()["rows"]

    assert rows
    assert all(5 <= row["quantity"] <= 54 for row in rows)
    assert len(rows) <= len(DEMO_BRANCHES) * len(DEMO_PRODUCTS)


def test_seed_adds_staff_for_every_role(client, db_session):
    run_seed(db_session)

    users = client.get("/branchlink/users").json()
    roles = {user["role"] for user in users}
    managers = [user for user in users if user["role"] == UserRole.BRANCH_MANAGER]

    assert roles == set(UserRole.ALL)
    assert sorted(user["branch_id"] for user in managers) == [branch[0] for branch in DEMO_BRANCHES]


def test_seeded_network_can_route_a_request(client, db_session):
    run_seed(db_session)
    client.put("/branchlink/stock/b-5/1001", json={"quantity": 30})

    response = client.post(
        "/branchlink/transfers",
        json={"requester_branch_id": "b-1", "items": [{"product_code": "1001", "quantity": 1}]},
    )

    assert response.status_code == 201
    assert response.json()["created"] == 1
