from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response
from sqlalchemy.exc import IntegrityError

from app.branchlink.core.deps import EngineDeps
from app.branchlink.core.error_catalog import AppError, ErrorCatalog, not_found, state_conflict
from app.branchlink.db.models import Branch, Product, RequestStatus, User
from app.branchlink.repos.catalog import BranchRepository, ProductRepository, UserRepository
from app.branchlink.repos.stock import StockRepository
from app.branchlink.repos.transfers import TransferQueryFilters, TransferRequestRepository
from app.branchlink.schemas.catalog import (
    BranchCreateRequest,
    BranchResponse,
    BranchUpdateRequest,
    ProductCreateRequest,
    ProductResponse,
    ProductUpdateRequest,
    RoleName,
    UserCreateRequest,
    UserResponse,
)
from app.branchlink.services.audit import AuditEventPayload, AuditService


router = APIRouter()

_OPEN_STATUSES = tuple(RequestStatus.ACTIVE | {RequestStatus.DELIVERED})


def _duplicate(entity: str, entity_id: str) -> AppError:
    return AppError(
        ErrorCatalog.DUPLICATE_RESOURCE,
        details={"message": f"{entity} already exists", "id": entity_id},
    )


def _audit(deps: EngineDeps, action: str, entity_type: str, entity_id: str, *, before=None, after=None) -> None:
    AuditService(deps.db, clock=deps.clock).record_event(
        AuditEventPayload(
            trace_id=deps.context.trace_id,
            actor=deps.context.actor,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            before=before,
            after=after,
        )
    )


def _branch_payload(branch: Branch) -> dict:
    return BranchResponse.model_validate(branch).model_dump(mode="json")


def _product_payload(product: Product) -> dict:
    return ProductResponse.model_validate(product).model_dump(mode="json")


@router.get("/branchlink/branches", response_model=list[BranchResponse])
def list_branches(deps: EngineDeps = Depends()):
    return BranchRepository(deps.db).list_all()


@router.post("/branchlink/branches", response_model=BranchResponse, status_code=201)
def create_branch(payload: BranchCreateRequest, deps: EngineDeps = Depends()):
    repo = BranchRepository(deps.db)
    if repo.get(payload.id) is not None:
        raise _duplicate("branch", payload.id)
    branch = Branch(**payload.model_dump(), created_at=deps.clock())
    repo.add(branch)
    deps.db.commit()
    _audit(deps, "branch.create", "branch", branch.id, after=_branch_payload(branch))
    return branch


@router.get("/branchlink/branches/{branch_id}", response_model=BranchResponse)
def get_branch(branch_id: str, deps: EngineDeps = Depends()):
    branch = BranchRepository(deps.db).get(branch_id)
    if branch is None:
        raise not_found("branch", branch_id)
    return branch


@router.patch("/branchlink/branches/{branch_id}", response_model=BranchResponse)
def update_branch(branch_id: str, payload: BranchUpdateRequest, deps: EngineDeps = Depends()):
    branch = BranchRepository(deps.db).get(branch_id)
    if branch is None:
        raise not_found("branch", branch_id)
    before = _branch_payload(branch)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(branch, field, value)
    branch.updated_at = deps.clock()
    deps.db.commit()
    deps.db.refresh(branch)
    _audit(deps, "branch.update", "branch", branch.id, before=before, after=_branch_payload(branch))
    return branch


@router.delete("/branchlink/branches/{branch_id}", status_code=204)
def delete_branch(branch_id: str, deps: EngineDeps = Depends()):
    repo = BranchRepository(deps.db)
    branch = repo.get(branch_id)
    if branch is None:
        raise not_found("branch", branch_id)
    if TransferRequestRepository(deps.db).count_active_for_branch(branch_id):
        raise state_conflict("branch has open transfer requests", branch_id=branch_id)
    before = _branch_payload(branch)
    # past requests keep their reference to the branch id
    StockRepository(deps.db).delete_for_branch(branch_id)
    repo.delete(branch)
    deps.db.commit()
    _audit(deps, "branch.delete", "branch", branch_id, before=before)
    return Response(status_code=204)


@router.get("/branchlink/products", response_model=list[ProductResponse])
def list_products(q: str | None = None, deps: EngineDeps = Depends()):
    return ProductRepository(deps.db).list_all(q)


@router.post("/branchlink/products", response_model=ProductResponse, status_code=201)
def create_product(payload: ProductCreateRequest, deps: EngineDeps = Depends()):
    repo = ProductRepository(deps.db)
    if repo.get(payload.code) is not None:
        raise _duplicate("product", payload.code)
    product = Product(**payload.model_dump(), created_at=deps.clock())
    repo.add(product)
    deps.db.commit()
    _audit(deps, "product.create", "product", product.code, after=_product_payload(product))
    return product


@router.get("/branchlink/products/{code}", response_model=ProductResponse)
def get_product(code: str, deps: EngineDeps = Depends()):
    product = ProductRepository(deps.db).get(code)
    if product is None:
        raise not_found("product", code)
    return product


@router.patch("/branchlink/products/{code}", response_model=ProductResponse)
def update_product(code: str, payload: ProductUpdateRequest, deps: EngineDeps = Depends()):
    product = ProductRepository(deps.db).get(code)
    if product is None:
        raise not_found("product", code)
    before = _product_payload(product)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(product, field, value)
    product.updated_at = deps.clock()
    deps.db.commit()
    deps.db.refresh(product)
    _audit(deps, "product.update", "product", product.code, before=before, after=_product_payload(product))
    return product


@router.delete("/branchlink/products/{code}", status_code=204)
def delete_product(code: str, deps: EngineDeps = Depends()):
    repo = ProductRepository(deps.db)
    product = repo.get(code)
    if product is None:
        raise not_found("product", code)
    open_requests = TransferRequestRepository(deps.db).list_requests(
        TransferQueryFilters(product_code=code, statuses=_OPEN_STATUSES), limit=1
    )
    if open_requests:
        raise state_conflict("product has open transfer requests", product_code=code)
    before = _product_payload(product)
    StockRepository(deps.db).delete_for_product(code)
    repo.delete(product)
    deps.db.commit()
    _audit(deps, "product.delete", "product", code, before=before)
    return Response(status_code=204)


@router.get("/branchlink/users", response_model=list[UserResponse])
def list_users(role: RoleName | None = None, deps: EngineDeps = Depends()):
    return UserRepository(deps.db).list_users(role)


@router.post("/branchlink/users", response_model=UserResponse, status_code=201)
def create_user(payload: UserCreateRequest, deps: EngineDeps = Depends()):
    repo = UserRepository(deps.db)
    user_id = payload.id or uuid.uuid4().hex
    if repo.get(user_id) is not None or repo.get_by_username(payload.username) is not None:
        raise _duplicate("user", payload.username)
    if payload.branch_id and BranchRepository(deps.db).get(payload.branch_id) is None:
        raise not_found("branch", payload.branch_id)
    user = User(
        id=user_id,
        username=payload.username,
        name=payload.name,
        role=payload.role,
        branch_id=payload.branch_id,
        created_at=deps.clock(),
    )
    try:
        repo.add(user)
        deps.db.commit()
    except IntegrityError as exc:
        deps.db.rollback()
        raise _duplicate("user", payload.username) from exc
    _audit(deps, "user.create", "user", user.id, after=UserResponse.model_validate(user).model_dump(mode="json"))
    return user
