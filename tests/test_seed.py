from datetime import date, timedelta

import pytest

from app import ledger, models
from app.auth import Identity
from app.errors import ConflictError
from app.schemas import ContractCreate
from app.seed import DEFAULT_SERVICES, seed_services, summarize


def test_seed_replaces_catalog(db_session, make_service):
    make_service(name="Legacy plan")
    created = seed_services(db_session)

    assert len(created) == len(DEFAULT_SERVICES) == 8
    names = {s.name for s in db_session.query(models.Service).all()}
    assert "Legacy plan" not in names
    assert "TV Ultra + HBO" in names


def test_summarize_counts_categories():
    services = [models.Service(**definition) for definition in DEFAULT_SERVICES]
    summary = summarize(services)
    assert summary["total"] == 8
    assert summary["by_category"] == {"Internet": 4, "Televisión": 4}
    assert summary["average_price"] == 71875
    assert summarize([]) == {
        "total": 0,
        "by_category": {"Internet": 0, "Televisión": 0},
        "average_price": 0,
    }


def test_seed_refuses_when_catalog_is_referenced(db_session, make_user, make_service):
    owner = Identity.from_model(make_user())
    service = make_service()
    start = date.today() + timedelta(days=1)
    ledger.create_contract(
        db_session,
        owner,
        ContractCreate(
            number="TEL-001",
            start_date=start,
            end_date=start + timedelta(days=30),
            service_ids=[service.id],
        ),
    )

    with pytest.raises(ConflictError) as exc_info:
        seed_services(db_session)
    assert exc_info.value.reason == "ServiceInUse"
    assert db_session.get(models.Service, service.id) is not None
