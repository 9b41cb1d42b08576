"""Contract ledger operations.

Each write runs the same sequence: ownership-scoped lookup, a series of
independent existence and uniqueness checks, then a single commit. The
unique index on ``contracts.number`` is what actually guarantees
uniqueness; the pre-check only produces a clearer error, and a violation
detected at commit time is reported as the same conflict.

Contracts are always looked up by id *and* owner, so a contract owned by
someone else is indistinguishable from one that does not exist.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from . import crud, models, schemas
from .auth import Identity, require_identity
from .errors import ConflictError, InvariantError, NotFoundError
from .invariants import (
    ensure_date_range,
    ensure_services_exist,
    ensure_services_present,
    normalize_contract_number,
    unique_ids,
)
from .pagination import build_pagination, offset_for

logger = logging.getLogger(__name__)


def _duplicate_number() -> ConflictError:
    return ConflictError(
        "A contract with that number already exists", reason="DuplicateNumber"
    )


def _unknown_service() -> InvariantError:
    return InvariantError(
        "One or more services do not exist", reason="UnknownService"
    )


def _owned_contracts(owner_id: int):
    return select(models.Contract).where(models.Contract.owner_id == owner_id)


def _with_details(stmt):
    """Load owner and services alongside the contracts selected by ``stmt``."""
    return stmt.options(
        selectinload(models.Contract.owner),
        selectinload(models.Contract.services),
    ).execution_options(populate_existing=True)


def _number_taken(db: Session, number: str, exclude_id: int | None = None) -> bool:
    stmt = select(models.Contract.id).where(models.Contract.number == number)
    if exclude_id is not None:
        stmt = stmt.where(models.Contract.id != exclude_id)
    return db.execute(stmt).first() is not None


def _load_owner(db: Session, identity: Identity) -> models.User:
    user = crud.get_user_by_id(db, identity.id)
    if user is None:
        raise InvariantError("Contract owner does not exist", reason="UnknownOwner")
    return user


def _resolve_services(db: Session, service_ids: list[int]) -> list[models.Service]:
    services = crud.get_services_by_ids(db, service_ids)
    ensure_services_exist(service_ids, (service.id for service in services))
    return services


def get_contract(
    db: Session, owner: Identity | None, contract_id: int
) -> models.Contract:
    """
    Retrieve a contract owned by the caller, with owner and services loaded.

    Args:
        db (Session): Database session.
        owner (Identity | None): Resolved caller.
        contract_id (int): Contract identifier.

    Raises:
        AuthenticationError: If there is no caller.
        NotFoundError: If no contract with that id belongs to the caller.

    Returns:
        Contract: The joined contract.
    """
    identity = require_identity(owner)
    contract = db.scalars(
        _with_details(
            _owned_contracts(identity.id).where(models.Contract.id == contract_id)
        )
    ).first()
    if contract is None:
        raise NotFoundError("Contract not found")
    return contract


def create_contract(
    db: Session, owner: Identity | None, contract_in: schemas.ContractCreate
) -> models.Contract:
    """
    Create a contract for the caller after checking every ledger rule.

    Checks run in this order: number uniqueness, owner existence,
    service existence, date ordering, non-empty service set.

    Raises:
        ConflictError: ``DuplicateNumber``.
        InvariantError: ``UnknownOwner``, ``UnknownService``,
            ``InvalidDateRange`` or ``EmptyServiceSet``.

    Returns:
        Contract: The persisted contract joined with owner and services.
    """
    identity = require_identity(owner)
    number = normalize_contract_number(contract_in.number)
    if _number_taken(db, number):
        logger.warning("User %s tried duplicate contract number %s", identity.id, number)
        raise _duplicate_number()

    user = _load_owner(db, identity)
    service_ids = unique_ids(contract_in.service_ids)
    services = _resolve_services(db, service_ids)
    ensure_date_range(contract_in.start_date, contract_in.end_date)
    ensure_services_present(service_ids)

    contract = models.Contract(
        number=number,
        start_date=contract_in.start_date,
        end_date=contract_in.end_date,
        status=contract_in.status or models.ContractStatus.ACTIVE,
        owner=user,
        services=services,
    )
    db.add(contract)
    crud.commit_or_conflict(db, _duplicate_number(), foreign_key=_unknown_service())
    logger.info("User %s created contract %s (%s)", identity.id, contract.id, number)
    return get_contract(db, identity, contract.id)


def list_contracts(
    db: Session,
    owner: Identity | None,
    status: models.ContractStatus | None = None,
    page: int = 1,
    page_size: int = 10,
) -> schemas.ContractPage:
    """
    List the caller's contracts, newest first.

    Args:
        db (Session): Database session.
        owner (Identity | None): Resolved caller.
        status (ContractStatus | None): Optional status filter.
        page (int): Page number starting at 1.
        page_size (int): Rows per page.

    Returns:
        ContractPage: Contracts on the page and page metadata.
    """
    identity = require_identity(owner)
    stmt = _owned_contracts(identity.id)
    if status is not None:
        stmt = stmt.where(models.Contract.status == status)

    total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    contracts = db.scalars(
        _with_details(
            stmt.order_by(models.Contract.created_at.desc(), models.Contract.id.desc())
            .offset(offset_for(page, page_size))
            .limit(page_size)
        )
    ).all()
    return schemas.ContractPage(
        contracts=[schemas.ContractOut.model_validate(c) for c in contracts],
        pagination=build_pagination(total, page, page_size),
    )


def update_contract(
    db: Session, owner: Identity | None, contract_id: int, changes: dict
) -> models.Contract:
    """
    Merge ``changes`` into a contract and re-check the ledger rules.

    Omitted fields keep their stored value. The rules are evaluated on the
    merged result; the number may stay equal to the contract's own.

    Args:
        db (Session): Database session.
        owner (Identity | None): Resolved caller.
        contract_id (int): Contract identifier.
        changes (dict): Provided fields only (``ContractUpdate`` dump).

    Raises:
        NotFoundError: If the contract does not belong to the caller.
        ConflictError: ``DuplicateNumber``.
        InvariantError: ``UnknownOwner``, ``UnknownService``,
            ``InvalidDateRange`` or ``EmptyServiceSet``.

    Returns:
        Contract: Updated contract joined with owner and services.
    """
    identity = require_identity(owner)
    contract = get_contract(db, identity, contract_id)

    number = contract.number
    if changes.get("number") is not None:
        number = normalize_contract_number(changes["number"])
        if number != contract.number and _number_taken(db, number, exclude_id=contract.id):
            raise _duplicate_number()

    _load_owner(db, identity)

    services = None
    if changes.get("service_ids") is not None:
        service_ids = unique_ids(changes["service_ids"])
        services = _resolve_services(db, service_ids)
    else:
        service_ids = [service.id for service in contract.services]

    start_date = changes.get("start_date") or contract.start_date
    end_date = changes.get("end_date") or contract.end_date
    ensure_date_range(start_date, end_date)
    ensure_services_present(service_ids)

    contract.number = number
    contract.start_date = start_date
    contract.end_date = end_date
    if changes.get("status") is not None:
        contract.status = changes["status"]
    if services is not None:
        contract.services = services
    contract.updated_at = models.utcnow()

    crud.commit_or_conflict(db, _duplicate_number(), foreign_key=_unknown_service())
    logger.info("User %s updated contract %s", identity.id, contract_id)
    return get_contract(db, identity, contract_id)


def delete_contract(db: Session, owner: Identity | None, contract_id: int) -> None:
    """
    Delete one of the caller's contracts. Referenced services are untouched.

    Raises:
        NotFoundError: If the contract does not belong to the caller.
    """
    identity = require_identity(owner)
    contract = get_contract(db, identity, contract_id)
    db.delete(contract)
    db.commit()
    logger.info("User %s deleted contract %s", identity.id, contract_id)


def contract_stats(db: Session, owner: Identity | None) -> schemas.ContractStats:
    """Count the caller's contracts by status and by service category."""
    identity = require_identity(owner)
    owned = models.Contract.owner_id == identity.id

    total = db.scalar(select(func.count(models.Contract.id)).where(owned)) or 0

    by_status = db.execute(
        select(models.Contract.status, func.count(models.Contract.id))
        .where(owned)
        .group_by(models.Contract.status)
        .order_by(models.Contract.status)
    ).all()

    by_category = db.execute(
        select(models.Service.category, func.count())
        .select_from(models.Contract)
        .join(
            models.contract_services,
            models.contract_services.c.contract_id == models.Contract.id,
        )
        .join(models.Service, models.Service.id == models.contract_services.c.service_id)
        .where(owned)
        .group_by(models.Service.category)
        .order_by(models.Service.category)
    ).all()

    return schemas.ContractStats(
        total_contracts=total,
        by_status=[
            schemas.StatusCount(status=status, count=count) for status, count in by_status
        ],
        by_service_category=[
            schemas.CategoryCount(category=category, count=count)
            for category, count in by_category
        ],
    )
