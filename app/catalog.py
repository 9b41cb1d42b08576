"""Service catalog routes.

Reading the catalog does not require a token; changing it does.
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from . import crud, schemas
from .auth import Identity, get_current_user, get_optional_user
from .database import get_db
from .models import ServiceCategory
from .pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["services"])


@router.get(
    "",
    response_model=schemas.Envelope[schemas.ServicePage],
    response_model_exclude_none=True,
)
def list_services(
    category: ServiceCategory | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: Identity | None = Depends(get_optional_user),
):
    """List catalog services, optionally filtered by category."""
    if current_user is not None:
        logger.debug("Catalog listed by user %s", current_user.id)
    return {
        "success": True,
        "message": "Services retrieved successfully",
        "data": crud.list_services(db, category=category, page=page, page_size=limit),
    }


@router.get(
    "/{service_id}",
    response_model=schemas.Envelope[schemas.ServiceOut],
    response_model_exclude_none=True,
)
def get_service(
    service_id: int,
    db: Session = Depends(get_db),
    current_user: Identity | None = Depends(get_optional_user),
):
    """Retrieve a single catalog service."""
    service = crud.get_service(db, service_id)
    return {
        "success": True,
        "message": "Service retrieved successfully",
        "data": schemas.ServiceOut.model_validate(service),
    }


@router.post(
    "",
    response_model=schemas.Envelope[schemas.ServiceOut],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def create_service(
    service_in: schemas.ServiceCreate,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(get_current_user),
):
    """Add a service to the catalog."""
    service = crud.create_service(db, service_in)
    return {
        "success": True,
        "message": "Service created successfully",
        "data": schemas.ServiceOut.model_validate(service),
    }


@router.put(
    "/{service_id}",
    response_model=schemas.Envelope[schemas.ServiceOut],
    response_model_exclude_none=True,
)
def update_service(
    service_id: int,
    changes: schemas.ServiceUpdate,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(get_current_user),
):
    """Update the provided fields of a catalog service."""
    service = crud.update_service(
        db, service_id, changes.model_dump(exclude_unset=True, exclude_none=True)
    )
    return {
        "success": True,
        "message": "Service updated successfully",
        "data": schemas.ServiceOut.model_validate(service),
    }


@router.delete(
    "/{service_id}",
    response_model=schemas.Envelope[None],
    response_model_exclude_none=True,
)
def delete_service(
    service_id: int,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(get_current_user),
):
    """
    Delete a catalog service.

    Fails with 409 while any contract still includes the service.
    """
    crud.delete_service(db, service_id)
    return {"success": True, "message": "Service deleted successfully"}
