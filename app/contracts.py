"""Contract management routes for the Telecom Contracts API."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from . import ledger, schemas
from .auth import Identity, get_current_user
from .database import get_db
from .models import ContractStatus
from .pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

router = APIRouter(prefix="/contracts", tags=["contracts"])


@router.post(
    "",
    response_model=schemas.Envelope[schemas.ContractOut],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def create_contract(
    contract_in: schemas.ContractCreate,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(get_current_user),
):
    """
    Create a new contract owned by the current user.

    Args:
        contract_in (ContractCreate): Contract input data.
        db (Session): Database session.
        current_user (Identity): Authenticated user.

    Returns:
        Envelope[ContractOut]: Created contract with owner and services.
    """
    contract = ledger.create_contract(db, current_user, contract_in)
    return {
        "success": True,
        "message": "Contract created successfully",
        "data": schemas.ContractOut.model_validate(contract),
    }


@router.get(
    "",
    response_model=schemas.Envelope[schemas.ContractPage],
    response_model_exclude_none=True,
)
def list_contracts(
    status_filter: ContractStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: Identity = Depends(get_current_user),
):
    """
    Retrieve a page of contracts belonging to the current user.

    Args:
        status_filter (ContractStatus | None): Optional status filter.
        page (int): Page number starting at 1.
        limit (int): Contracts per page.
        db (Session): Database session.
        current_user (Identity): Authenticated user.

    Returns:
        Envelope[ContractPage]: Contracts and pagination metadata.
    """
    result = ledger.list_contracts(
        db, current_user, status=status_filter, page=page, page_size=limit
    )
    return {
        "success": True,
        "message": "Contracts retrieved successfully",
        "data": result,
    }


@router.get(
    "/stats",
    response_model=schemas.Envelope[schemas.ContractStats],
    response_model_exclude_none=True,
)
def contract_stats(
    db: Session = Depends(get_db),
    current_user: Identity = Depends(get_current_user),
):
    """Return counts of the current user's contracts by status and category."""
    return {
        "success": True,
        "message": "Statistics retrieved successfully",
        "data": ledger.contract_stats(db, current_user),
    }


@router.get(
    "/{contract_id}",
    response_model=schemas.Envelope[schemas.ContractOut],
    response_model_exclude_none=True,
)
def get_contract(
    contract_id: int,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(get_current_user),
):
    """
    Retrieve a single contract by ID for the current user.

    Raises:
        NotFoundError: If the contract does not exist or belongs to
            another user.
    """
    contract = ledger.get_contract(db, current_user, contract_id)
    return {
        "success": True,
        "message": "Contract retrieved successfully",
        "data": schemas.ContractOut.model_validate(contract),
    }


@router.put(
    "/{contract_id}",
    response_model=schemas.Envelope[schemas.ContractOut],
    response_model_exclude_none=True,
)
def update_contract(
    contract_id: int,
    changes: schemas.ContractUpdate,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(get_current_user),
):
    """
    Partially update an existing contract.

    Only fields provided in the request are changed; the contract rules
    are checked against the merged result.
    """
    contract = ledger.update_contract(
        db,
        current_user,
        contract_id,
        changes.model_dump(exclude_unset=True, exclude_none=True),
    )
    return {
        "success": True,
        "message": "Contract updated successfully",
        "data": schemas.ContractOut.model_validate(contract),
    }


@router.delete(
    "/{contract_id}",
    response_model=schemas.Envelope[None],
    response_model_exclude_none=True,
)
def remove_contract(
    contract_id: int,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(get_current_user),
):
    """Delete one of the current user's contracts."""
    ledger.delete_contract(db, current_user, contract_id)
    return {"success": True, "message": "Contract deleted successfully"}
