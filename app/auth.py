"""Authentication and authorization related routes and helpers.

Tokens are stateless JWTs signed with ``SECRET_KEY``. A token stays valid
until it expires; there is no server-side revocation.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from fastapi_limiter.depends import RateLimiter
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import schemas, crud
from .database import get_db
from .errors import AuthenticationError
from .models import User
from .core import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

pwd_context = CryptContext(
    schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS
)
bearer_scheme = HTTPBearer(auto_error=False)
router = APIRouter(prefix="/auth", tags=["auth"])

auth_rate_limit = RateLimiter(
    times=settings.RATE_LIMIT_TIMES, seconds=settings.RATE_LIMIT_SECONDS
)


@dataclass(frozen=True)
class Identity:
    """Resolved caller attached to an authenticated request."""

    id: int
    email: str
    name: str

    @classmethod
    def from_model(cls, user: User) -> "Identity":
        """
        Create an Identity from a User ORM model.

        Args:
            user (User): SQLAlchemy User model.

        Returns:
            Identity: Immutable view of the user.
        """
        return cls(id=user.id, email=user.email, name=user.name)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Compare a plain password with its hashed value."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Generate a password hash using the configured context."""
    return pwd_context.hash(password)


def create_access_token(user_id: int, expires_delta: timedelta | None = None) -> str:
    """Create a signed JWT access token for the given user id."""
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {"sub": str(user_id), "iat": now, "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> schemas.TokenData:
    """
    Verify signature and expiry of a token.

    Raises:
        AuthenticationError: ``ExpiredToken`` or ``InvalidToken``.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Token expired", reason="ExpiredToken")
    except JWTError:
        raise AuthenticationError("Invalid token", reason="InvalidToken")
    subject = payload.get("sub")
    if not subject or not str(subject).isdigit():
        raise AuthenticationError("Invalid token", reason="InvalidToken")
    return schemas.TokenData(sub=subject, exp=payload.get("exp"))


def issue_token(db: Session, email: str, password: str) -> tuple[User, str]:
    """
    Exchange an email/password pair for an access token.

    Args:
        db (Session): Database session.
        email (str): Login email, already lower-cased.
        password (str): Plain password.

    Raises:
        AuthenticationError: ``InvalidCredentials`` for an unknown email
            or a wrong password.

    Returns:
        tuple[User, str]: The authenticated user and the signed token.
    """
    user = crud.get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        logger.warning("Failed login for %s", email)
        raise AuthenticationError("Invalid credentials", reason="InvalidCredentials")
    return user, create_access_token(user.id)


def resolve_token(db: Session, token: str | None) -> Identity:
    """Turn a bearer token into the identity of an existing user."""
    if not token:
        raise AuthenticationError("Access token required", reason="MissingToken")
    token_data = decode_access_token(token)
    user = crud.get_user_by_id(db, int(token_data.sub))
    if user is None:
        raise AuthenticationError("Invalid token - user not found", reason="UnknownUser")
    return Identity.from_model(user)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Identity:
    """Dependency that returns the authenticated caller or fails with 401."""
    token = credentials.credentials if credentials else None
    return resolve_token(db, token)


def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Identity | None:
    """Dependency that resolves the caller when possible and never fails."""
    if credentials is None:
        return None
    try:
        return resolve_token(db, credentials.credentials)
    except AuthenticationError as exc:
        logger.debug("Ignoring unusable token on optional route: %s", exc.reason)
        return None


def require_identity(identity: Identity | None) -> Identity:
    """Reject the absence of an identity where one is required."""
    if identity is None:
        raise AuthenticationError("User not authenticated", reason="MissingToken")
    return identity


@router.post(
    "/register",
    response_model=schemas.Envelope[schemas.AuthPayload],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(auth_rate_limit)],
)
def register(user_in: schemas.UserCreate, db: Session = Depends(get_db)):
    """Register a new user and return it together with an access token."""

    hashed_password = get_password_hash(user_in.password)
    user = crud.create_user(db, user_in, hashed_password)
    token = create_access_token(user.id)
    return {
        "success": True,
        "message": "User registered successfully",
        "data": schemas.AuthPayload(user=schemas.UserOut.model_validate(user), token=token),
    }


@router.post(
    "/login",
    response_model=schemas.Envelope[schemas.AuthPayload],
    response_model_exclude_none=True,
    dependencies=[Depends(auth_rate_limit)],
)
def login(credentials: schemas.LoginRequest, db: Session = Depends(get_db)):
    """Authenticate a user and return an access token."""

    user, token = issue_token(db, credentials.email, credentials.password)
    logger.info("User %s logged in", user.id)
    return {
        "success": True,
        "message": "Login successful",
        "data": schemas.AuthPayload(user=schemas.UserOut.model_validate(user), token=token),
    }


@router.post(
    "/logout",
    response_model=schemas.Envelope[None],
    response_model_exclude_none=True,
)
def logout(current_user: Identity = Depends(get_current_user)):
    """Acknowledge a logout; the client discards its token."""

    logger.info("User %s logged out", current_user.id)
    return {"success": True, "message": "Logged out successfully"}
