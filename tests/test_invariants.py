from datetime import date

import pytest

from app.errors import InvariantError, ValidationError
from app.invariants import (
    ensure_date_range,
    ensure_non_negative_price,
    ensure_services_exist,
    ensure_services_present,
    normalize_contract_number,
    unique_ids,
)
from app.pagination import build_pagination, offset_for


def test_normalize_contract_number():
    assert normalize_contract_number("  tel-001 ") == "TEL-001"
    with pytest.raises(ValidationError):
        normalize_contract_number("tel/001")


def test_unique_ids_keeps_first_seen_order():
    assert unique_ids([3, 1, 3, 2, 1]) == [3, 1, 2]


def test_ensure_services_exist_lists_missing():
    ensure_services_exist([1, 2], [2, 1])
    with pytest.raises(InvariantError) as exc_info:
        ensure_services_exist([1, 2, 5], [1])
    assert exc_info.value.reason == "UnknownService"
    assert exc_info.value.data == {"missing_service_ids": [2, 5]}


def test_ensure_date_range():
    ensure_date_range(date(2030, 1, 1), date(2030, 1, 2))
    for end in (date(2030, 1, 1), date(2029, 12, 31)):
        with pytest.raises(InvariantError) as exc_info:
            ensure_date_range(date(2030, 1, 1), end)
        assert exc_info.value.reason == "InvalidDateRange"


def test_ensure_services_present():
    ensure_services_present([1])
    with pytest.raises(InvariantError) as exc_info:
        ensure_services_present([])
    assert exc_info.value.reason == "EmptyServiceSet"
    assert exc_info.value.status_code == 400


def test_ensure_non_negative_price():
    ensure_non_negative_price(0)
    with pytest.raises(ValidationError):
        ensure_non_negative_price(-0.01)


def test_offset_for():
    assert offset_for(1, 10) == 0
    assert offset_for(3, 25) == 50


@pytest.mark.parametrize(
    "total, page, size, pages, has_next, has_prev",
    [
        (0, 1, 10, 0, False, False),
        (10, 1, 10, 1, False, False),
        (11, 1, 10, 2, True, False),
        (11, 2, 10, 2, False, True),
        (5, 4, 2, 3, False, True),
    ],
)
def test_build_pagination(total, page, size, pages, has_next, has_prev):
    meta = build_pagination(total, page, size)
    assert meta.total_pages == pages
    assert meta.has_next_page is has_next
    assert meta.has_prev_page is has_prev
    assert meta.total == total
