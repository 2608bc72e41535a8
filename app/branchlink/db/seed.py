import logging
import random

from sqlalchemy import func, select

from app.branchlink.core.clock import utcnow
from app.branchlink.core.logging import log_event
from app.branchlink.db.models import Branch, Product, StockEntry, User, UserRole

logger = logging.getLogger(__name__)

DEMO_BRANCHES = [
    ("b-1", "Branch 1 - Glym", 30.012, 31.214),
    ("b-2", "Branch 2 - Syria St", 30.047, 31.236),
    ("b-3", "Branch 3 - Wingate", 30.071, 31.259),
    ("b-4", "Branch 4 - Fleming 2", 30.089, 31.283),
    ("b-5", "Branch 5 - Fleming", 30.094, 31.297),
]

DEMO_PRODUCTS = [
    ("1001", "Panadol Extra", "622112233", False),
    ("1002", "Augmentin 1g", "622445566", False),
    ("1003", "Cataflam 50mg", "622778899", False),
    ("1004", "Insulin Lantus", "622001122", True),
    ("1005", "Antinal", "622334455", False),
]

DEMO_STAFF = [
    ("admin", "admin", "System Administrator", UserRole.ADMIN),
    ("dist", "dist", "Distribution Officer", UserRole.DISTRIBUTION),
    ("driver1", "driver1", "Mostafa (driver)", UserRole.DELIVERY),
    ("inv", "inventory", "Inventory Auditor", UserRole.INVENTORY_MANAGER),
    ("shortage", "shortage", "Shortage Officer", UserRole.SHORTAGE_MANAGER),
]


def _is_empty(db) -> bool:
    return not db.execute(select(func.count()).select_from(Branch)).scalar_one()


def run_seed(db, *, stock_seed: int = 7) -> bool:
    """Load the demo network into an empty database. Returns False when data already exists."""
    if not _is_empty(db):
        return False

    now = utcnow()
    rng = random.Random(stock_seed)
    for branch_id, name, latitude, longitude in DEMO_BRANCHES:
        db.add(Branch(id=branch_id, name=name, address="Alexandria", latitude=latitude, longitude=longitude, created_at=now))
    for code, name, barcode, fridge in DEMO_PRODUCTS:
        db.add(Product(code=code, name=name, barcode=barcode, requires_refrigeration=fridge, created_at=now))
    for branch_id, *_ in DEMO_BRANCHES:
        for code, *_ in DEMO_PRODUCTS:
            # roughly one pair in five starts with no entry at all
            if rng.random() > 0.2:
                db.add(StockEntry(branch_id=branch_id, product_code=code, quantity=rng.randint(5, 54), updated_at=now))

    for user_id, username, name, role in DEMO_STAFF:
        db.add(User(id=user_id, username=username, name=name, role=role, created_at=now))
    for branch_id, name, *_ in DEMO_BRANCHES:
        db.add(
            User(
                id=f"user-{branch_id}",
                username=f"user-{branch_id}",
                name=f"Pharmacist, {name}",
                role=UserRole.BRANCH_MANAGER,
                branch_id=branch_id,
                created_at=now,
            )
        )
    db.commit()
    log_event(logger, "demo_seed_loaded", branches=len(DEMO_BRANCHES), products=len(DEMO_PRODUCTS))
    return True
