"""CRUD operations for users and catalog services.

This module contains database interaction logic for user and service
entities, isolated from FastAPI route handlers. Contract operations live
in ``app.ledger``.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas
from .errors import APIError, ConflictError, NotFoundError
from .invariants import ensure_non_negative_price
from .pagination import build_pagination, offset_for

logger = logging.getLogger(__name__)


def is_foreign_key_violation(exc: IntegrityError) -> bool:
    """Whether ``exc`` was raised by a foreign key rather than a unique index."""
    return "foreign key" in str(exc.orig).lower()


def commit_or_conflict(
    db: Session, conflict: APIError, foreign_key: APIError | None = None
) -> None:
    """
    Commit, translating constraint violations into API errors.

    Args:
        db (Session): Database session.
        conflict (APIError): Raised for a unique-constraint violation.
        foreign_key (APIError | None): Raised for a foreign key violation;
            ``conflict`` is used when not given.
    """
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        if foreign_key is not None and is_foreign_key_violation(exc):
            raise foreign_key from exc
        raise conflict from exc


# --- users -----------------------------------------------------------------


def create_user(
    db: Session, user_in: schemas.UserCreate, hashed_password: str
) -> models.User:
    """
    Create and persist a new user.

    Args:
        db (Session): SQLAlchemy database session.
        user_in (UserCreate): Incoming user data.
        hashed_password (str): Securely hashed password.

    Raises:
        ConflictError: If a user with the same email already exists.

    Returns:
        User: Newly created user instance.
    """
    duplicate = ConflictError(
        "A user with that email already exists", reason="DuplicateEmail"
    )
    if get_user_by_email(db, user_in.email):
        raise duplicate

    user = models.User(
        name=user_in.name,
        email=user_in.email,
        hashed_password=hashed_password,
    )
    db.add(user)
    commit_or_conflict(db, duplicate)
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


def get_user_by_email(db: Session, email: str) -> models.User | None:
    """
    Retrieve a user by email address.

    Args:
        db (Session): Database session.
        email (str): User email, compared case-insensitively.

    Returns:
        User | None: User if found, otherwise ``None``.
    """
    return db.execute(
        select(models.User).where(models.User.email == email.strip().lower())
    ).scalar_one_or_none()


def get_user_by_id(db: Session, user_id: int) -> models.User | None:
    """
    Retrieve a user by primary key.

    Args:
        db (Session): Database session.
        user_id (int): User identifier.

    Returns:
        User | None: User if found, otherwise ``None``.
    """
    return db.get(models.User, user_id)


def update_user_profile(db: Session, user: models.User, changes: dict) -> models.User:
    """
    Update name and/or email of a user.

    Args:
        db (Session): Database session.
        user (User): Target user.
        changes (dict): Provided fields only.

    Raises:
        ConflictError: If the new email belongs to another user.

    Returns:
        User: Updated user instance.
    """
    duplicate = ConflictError(
        "A user with that email already exists", reason="DuplicateEmail"
    )
    email = changes.get("email")
    if email is not None:
        taken = db.execute(
            select(models.User.id).where(
                models.User.email == email, models.User.id != user.id
            )
        ).first()
        if taken:
            raise duplicate

    for key, value in changes.items():
        setattr(user, key, value)
    commit_or_conflict(db, duplicate)
    db.refresh(user)
    return user


def update_user_password(
    db: Session, user: models.User, hashed_password: str
) -> models.User:
    """
    Update user's hashed password.

    Args:
        db (Session): Database session.
        user (User): Target user.
        hashed_password (str): New hashed password.

    Returns:
        User: Updated user instance.
    """
    user.hashed_password = hashed_password
    db.commit()
    db.refresh(user)
    logger.info("Password changed for user %s", user.id)
    return user


# --- services --------------------------------------------------------------


def _duplicate_service_name() -> ConflictError:
    return ConflictError(
        "A service with that name already exists", reason="DuplicateServiceName"
    )


def get_service(db: Session, service_id: int) -> models.Service:
    """
    Retrieve a catalog service.

    Raises:
        NotFoundError: If no service has that id.
    """
    service = db.get(models.Service, service_id)
    if service is None:
        raise NotFoundError("Service not found")
    return service


def get_services_by_ids(db: Session, service_ids: list[int]) -> list[models.Service]:
    """Return the services whose ids are in ``service_ids``."""
    if not service_ids:
        return []
    return list(
        db.scalars(
            select(models.Service).where(models.Service.id.in_(service_ids))
        ).all()
    )


def list_services(
    db: Session,
    category: models.ServiceCategory | None = None,
    page: int = 1,
    page_size: int = 10,
) -> schemas.ServicePage:
    """
    List catalog services, newest first.

    Args:
        db (Session): Database session.
        category (ServiceCategory | None): Optional category filter.
        page (int): Page number starting at 1.
        page_size (int): Rows per page.

    Returns:
        ServicePage: Services on the page and page metadata.
    """
    conditions = []
    if category is not None:
        conditions.append(models.Service.category == category)

    total = db.scalar(select(func.count(models.Service.id)).where(*conditions))
    services = db.scalars(
        select(models.Service)
        .where(*conditions)
        .order_by(models.Service.created_at.desc(), models.Service.id.desc())
        .offset(offset_for(page, page_size))
        .limit(page_size)
    ).all()
    return schemas.ServicePage(
        services=[schemas.ServiceOut.model_validate(s) for s in services],
        pagination=build_pagination(total or 0, page, page_size),
    )


def create_service(db: Session, service_in: schemas.ServiceCreate) -> models.Service:
    """
    Add a service to the catalog.

    Raises:
        ConflictError: ``DuplicateServiceName`` if the name is taken.
    """
    ensure_non_negative_price(service_in.price)
    existing = db.execute(
        select(models.Service.id).where(models.Service.name == service_in.name)
    ).first()
    if existing:
        raise _duplicate_service_name()

    service = models.Service(**service_in.model_dump())
    db.add(service)
    commit_or_conflict(db, _duplicate_service_name())
    db.refresh(service)
    logger.info("Created service %s (%s)", service.id, service.name)
    return service


def update_service(db: Session, service_id: int, changes: dict) -> models.Service:
    """
    Update a catalog service in place.

    Args:
        db (Session): Database session.
        service_id (int): Service identifier.
        changes (dict): Provided fields only.

    Raises:
        NotFoundError: If the service does not exist.
        ConflictError: ``DuplicateServiceName`` if renamed onto another service.

    Returns:
        Service: Updated service.
    """
    service = get_service(db, service_id)
    if "price" in changes:
        ensure_non_negative_price(changes["price"])
    name = changes.get("name")
    if name is not None and name != service.name:
        taken = db.execute(
            select(models.Service.id).where(
                models.Service.name == name, models.Service.id != service.id
            )
        ).first()
        if taken:
            raise _duplicate_service_name()

    for key, value in changes.items():
        setattr(service, key, value)
    commit_or_conflict(db, _duplicate_service_name())
    db.refresh(service)
    logger.info("Updated service %s", service.id)
    return service


def count_contracts_using_service(db: Session, service_id: int) -> int:
    """Number of contracts that include the service."""
    return db.scalar(
        select(func.count())
        .select_from(models.contract_services)
        .where(models.contract_services.c.service_id == service_id)
    ) or 0


def delete_service(db: Session, service_id: int) -> None:
    """
    Remove a service from the catalog.

    Raises:
        NotFoundError: If the service does not exist.
        ConflictError: ``ServiceInUse`` while any contract references it;
            ``data`` carries the number of referencing contracts.
    """
    service = get_service(db, service_id)
    in_use = count_contracts_using_service(db, service_id)
    if in_use:
        logger.warning(
            "Refusing to delete service %s referenced by %s contracts", service_id, in_use
        )
        raise ConflictError(
            "Service cannot be deleted because contracts are using it",
            reason="ServiceInUse",
            data={"contractsCount": in_use},
        )
    db.delete(service)
    commit_or_conflict(
        db,
        ConflictError(
            "Service cannot be deleted because contracts are using it",
            reason="ServiceInUse",
        ),
    )
    logger.info("Deleted service %s", service_id)
