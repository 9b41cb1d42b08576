"""Consistency rules checked by the operations before every write.

The functions here only inspect values they are given; lookups against
the database stay in ``app.crud`` and ``app.ledger`` so that the checks
read the same for create and update.
"""

import re
from datetime import date
from typing import Iterable, Sequence

from .errors import InvariantError, ValidationError

CONTRACT_NUMBER_PATTERN = re.compile(r"^[A-Z0-9-]+$")


def normalize_contract_number(number: str) -> str:
    """Upper-case and trim a contract number, rejecting foreign characters."""
    normalized = number.strip().upper()
    if not CONTRACT_NUMBER_PATTERN.match(normalized):
        raise ValidationError(
            "Contract number may only contain letters, digits and hyphens",
            errors=[{"field": "number", "message": "invalid format"}],
        )
    return normalized


def unique_ids(ids: Iterable[int]) -> list[int]:
    """Drop repeated ids, keeping first-seen order."""
    return list(dict.fromkeys(ids))


def ensure_services_exist(requested: Sequence[int], found: Iterable[int]) -> None:
    """Fail when fewer services were found than were requested."""
    found_ids = set(found)
    if len(found_ids) != len(requested):
        missing = [service_id for service_id in requested if service_id not in found_ids]
        raise InvariantError(
            "One or more services do not exist",
            reason="UnknownService",
            data={"missing_service_ids": missing},
        )


def ensure_date_range(start: date, end: date) -> None:
    if end <= start:
        raise InvariantError(
            "End date must be later than start date", reason="InvalidDateRange"
        )


def ensure_services_present(service_ids: Sequence[int]) -> None:
    if not service_ids:
        raise InvariantError(
            "A contract must include at least one service", reason="EmptyServiceSet"
        )


def ensure_non_negative_price(price: float) -> None:
    if price < 0:
        raise ValidationError(
            "Price cannot be negative",
            errors=[{"field": "price", "message": "must be greater than or equal to 0"}],
        )
