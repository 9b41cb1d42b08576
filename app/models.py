"""Database models for the Telecom Contracts API.

This module defines SQLAlchemy ORM models used by the application.
Business invariants are not enforced here; see ``app.invariants``.
The table constraints below are the last line of defence for
uniqueness and non-negative prices.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime:
    """Timezone-aware current time used for row timestamps."""
    return datetime.now(timezone.utc)


class ServiceCategory(str, enum.Enum):
    """Closed set of offering types in the catalog."""

    INTERNET = "Internet"
    TELEVISION = "Televisión"


class ContractStatus(str, enum.Enum):
    """Lifecycle states of a contract."""

    ACTIVE = "Activo"
    INACTIVE = "Inactivo"
    SUSPENDED = "Suspendido"
    CANCELLED = "Cancelado"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


contract_services = Table(
    "contract_services",
    Base.metadata,
    Column(
        "contract_id",
        Integer,
        ForeignKey("contracts.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "service_id",
        Integer,
        ForeignKey("services.id", ondelete="RESTRICT"),
        primary_key=True,
    ),
)
"""Association between contracts and the services they include."""


class User(Base):
    """
    SQLAlchemy model representing an account holder.

    A user owns any number of contracts. Only the bcrypt hash of the
    password is stored.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    #: Contracts owned by the user
    contracts = relationship("Contract", back_populates="owner")


class Service(Base):
    """SQLAlchemy model representing a priced catalog offering."""

    __tablename__ = "services"
    __table_args__ = (CheckConstraint("price >= 0", name="ck_services_price"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False)
    category = Column(
        Enum(
            ServiceCategory,
            name="service_category",
            values_callable=_enum_values,
            validate_strings=True,
        ),
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


class Contract(Base):
    """
    SQLAlchemy model representing a service contract.

    Each contract belongs to exactly one user and references one or more
    catalog services. The contract number is unique across all users.
    """

    __tablename__ = "contracts"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(String(20), unique=True, index=True, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(
        Enum(
            ContractStatus,
            name="contract_status",
            values_callable=_enum_values,
            validate_strings=True,
        ),
        nullable=False,
        default=ContractStatus.ACTIVE,
        index=True,
    )
    created_at = Column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    #: Identifier of the owning user
    owner_id = Column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    #: Reference to the owning User object
    owner = relationship("User", back_populates="contracts")

    #: Services included in the contract
    services = relationship("Service", secondary=contract_services, order_by=Service.id)
