import re
from datetime import date, datetime
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)

from .invariants import CONTRACT_NUMBER_PATTERN
from .models import ContractStatus, ServiceCategory

T = TypeVar("T")


_PASSWORD_RULE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")


def _normalize_email(value: str) -> str:
    return value.strip().lower()


def _check_password_strength(value: str) -> str:
    if not _PASSWORD_RULE.match(value):
        raise ValueError(
            "Password must contain a lowercase letter, an uppercase letter and a digit"
        )
    return value


def _normalize_contract_number(value: str) -> str:
    value = value.strip().upper()
    if not 3 <= len(value) <= 20:
        raise ValueError("Contract number must be between 3 and 20 characters")
    if not CONTRACT_NUMBER_PATTERN.match(value):
        raise ValueError(
            "Contract number may only contain letters, digits and hyphens"
        )
    return value


class Envelope(BaseModel, Generic[T]):
    """Uniform response wrapper used by every endpoint."""

    success: bool
    message: str
    data: Optional[T] = None
    errors: Optional[List[Any]] = None


class FieldError(BaseModel):
    """Single itemized validation failure."""

    field: str
    message: str


class Pagination(BaseModel):
    """Page metadata derived from the total count."""

    current_page: int
    page_size: int
    total_pages: int
    total: int
    has_next_page: bool
    has_prev_page: bool


# --- users -----------------------------------------------------------------


class UserBase(BaseModel):
    """Shared fields for user schemas."""

    name: str = Field(min_length=2, max_length=50)
    email: EmailStr

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return value.strip()

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return _normalize_email(value)


class UserCreate(UserBase):
    """Payload for registering a new user."""

    password: str = Field(min_length=6)

    @field_validator("password")
    @classmethod
    def _strong_password(cls, value: str) -> str:
        return _check_password_strength(value)


class UserUpdate(BaseModel):
    """Profile changes (all fields optional)."""

    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    email: Optional[EmailStr] = None

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_email(value) if value is not None else value


class PasswordChange(BaseModel):
    """Payload for changing the password of the current user."""

    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)

    @field_validator("new_password")
    @classmethod
    def _strong_password(cls, value: str) -> str:
        return _check_password_strength(value)


class LoginRequest(BaseModel):
    """Credentials submitted to obtain a token."""

    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return _normalize_email(value)


class UserOut(BaseModel):
    """Response schema for user data."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: EmailStr
    created_at: datetime


class AuthPayload(BaseModel):
    """User profile together with a freshly issued access token."""

    user: UserOut
    token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    """Payload stored inside JWT token."""

    sub: str
    exp: Optional[datetime] = None


# --- services --------------------------------------------------------------


class ServiceBase(BaseModel):
    """Shared fields for catalog service schemas."""

    name: str = Field(min_length=2, max_length=100)
    description: str = Field(min_length=10, max_length=500)
    price: float = Field(ge=0)
    category: ServiceCategory

    @field_validator("name", "description")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        return value.strip()


class ServiceCreate(ServiceBase):
    """Schema for creating a catalog service."""

    pass


class ServiceUpdate(BaseModel):
    """Schema for updating a service (all fields optional)."""

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, min_length=10, max_length=500)
    price: Optional[float] = Field(default=None, ge=0)
    category: Optional[ServiceCategory] = None


class ServiceOut(ServiceBase):
    """Schema for returning a service with its ID."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    updated_at: datetime


class ServicePage(BaseModel):
    services: List[ServiceOut]
    pagination: Pagination


# --- contracts -------------------------------------------------------------


class ContractCreate(BaseModel):
    """Schema for creating a contract."""

    number: str
    start_date: date
    end_date: date
    status: Optional[ContractStatus] = None
    service_ids: List[int] = Field(min_length=1)

    @field_validator("number")
    @classmethod
    def _normalize_number(cls, value: str) -> str:
        return _normalize_contract_number(value)

    @field_validator("start_date")
    @classmethod
    def _not_in_past(cls, value: date) -> date:
        if value < date.today():
            raise ValueError("Start date cannot be earlier than today")
        return value


class ContractUpdate(BaseModel):
    """Schema for updating a contract (all fields optional)."""

    number: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[ContractStatus] = None
    service_ids: Optional[List[int]] = Field(default=None, min_length=1)

    @field_validator("number")
    @classmethod
    def _normalize_number(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_contract_number(value) if value is not None else value


class OwnerSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: EmailStr


class ServiceSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    price: float
    category: ServiceCategory


class ContractOut(BaseModel):
    """Contract joined with its owner and services."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    number: str
    start_date: date
    end_date: date
    status: ContractStatus
    owner: OwnerSummary
    services: List[ServiceSummary]
    created_at: datetime
    updated_at: datetime


class ContractPage(BaseModel):
    contracts: List[ContractOut]
    pagination: Pagination


class StatusCount(BaseModel):
    status: ContractStatus
    count: int


class CategoryCount(BaseModel):
    category: ServiceCategory
    count: int


class ContractStats(BaseModel):
    """Aggregate counts over the caller's contracts."""

    total_contracts: int
    by_status: List[StatusCount]
    by_service_category: List[CategoryCount]
