"""User profile routes for the Telecom Contracts API."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from . import schemas, crud
from .auth import Identity, get_current_user, get_password_hash, verify_password
from .database import get_db
from .errors import AuthenticationError, NotFoundError

router = APIRouter(prefix="/users", tags=["users"])


def _load_user(db: Session, identity: Identity):
    user = crud.get_user_by_id(db, identity.id)
    if user is None:
        raise NotFoundError("User not found")
    return user


@router.get(
    "/me",
    response_model=schemas.Envelope[schemas.UserOut],
    response_model_exclude_none=True,
)
def read_me(
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Retrieve details of the currently authenticated user.

    Args:
        current_user (Identity): Caller resolved from the bearer token.
        db (Session): Database session.

    Returns:
        Envelope[UserOut]: User profile information.
    """
    user = _load_user(db, current_user)
    return {
        "success": True,
        "message": "Profile retrieved successfully",
        "data": schemas.UserOut.model_validate(user),
    }


@router.put(
    "/me",
    response_model=schemas.Envelope[schemas.UserOut],
    response_model_exclude_none=True,
)
def update_me(
    changes: schemas.UserUpdate,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Update name and/or email of the authenticated user.

    Raises:
        ConflictError: If the email is already used by another account.
    """
    user = _load_user(db, current_user)
    user = crud.update_user_profile(
        db, user, changes.model_dump(exclude_unset=True, exclude_none=True)
    )
    return {
        "success": True,
        "message": "Profile updated successfully",
        "data": schemas.UserOut.model_validate(user),
    }


@router.put(
    "/me/password",
    response_model=schemas.Envelope[None],
    response_model_exclude_none=True,
)
def change_password(
    payload: schemas.PasswordChange,
    current_user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Change the password after re-verifying the current one.

    Raises:
        AuthenticationError: If the current password does not match.
    """
    user = _load_user(db, current_user)
    if not verify_password(payload.current_password, user.hashed_password):
        raise AuthenticationError(
            "Current password is incorrect", reason="InvalidCredentials"
        )
    crud.update_user_password(db, user, get_password_hash(payload.new_password))
    return {"success": True, "message": "Password updated successfully"}
