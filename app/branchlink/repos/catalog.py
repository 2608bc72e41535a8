from __future__ import annotations

from sqlalchemy import select

from app.branchlink.db.models import Branch, Product, User


class BranchRepository:
    def __init__(self, db):
        self.db = db

    def get(self, branch_id: str) -> Branch | None:
        return self.db.get(Branch, branch_id)

    def list_all(self) -> list[Branch]:
        return self.db.execute(select(Branch).order_by(Branch.id.asc())).scalars().all()

    def add(self, branch: Branch) -> Branch:
        self.db.add(branch)
        self.db.flush()
        return branch

    def delete(self, branch: Branch) -> None:
        self.db.delete(branch)
        self.db.flush()


class ProductRepository:
    def __init__(self, db):
        self.db = db

    def get(self, code: str) -> Product | None:
        return self.db.get(Product, code)

    def list_all(self, q: str | None = None) -> list[Product]:
        query = select(Product)
        if q:
            like = f"%{q}%"
            query = query.where(Product.name.ilike(like) | Product.code.ilike(like) | Product.barcode.ilike(like))
        return self.db.execute(query.order_by(Product.code.asc())).scalars().all()

    def add(self, product: Product) -> Product:
        self.db.add(product)
        self.db.flush()
        return product

    def delete(self, product: Product) -> None:
        self.db.delete(product)
        self.db.flush()


class UserRepository:
    def __init__(self, db):
        self.db = db

    def get(self, user_id: str) -> User | None:
        return self.db.get(User, user_id)

    def get_by_username(self, username: str) -> User | None:
        return self.db.execute(select(User).where(User.username == username)).scalars().first()

    def list_users(self, role: str | None = None) -> list[User]:
        query = select(User)
        if role:
            query = query.where(User.role == role)
        return self.db.execute(query.order_by(User.username.asc())).scalars().all()

    def add(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user
