from datetime import date, timedelta

import pytest
from fastapi import status
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError

from app import crud, ledger, models
from app.auth import Identity
from app.errors import ConflictError
from app.schemas import ContractCreate

SERVICE_PAYLOAD = {
    "name": "Internet Ultra 500MB",
    "description": "Plan de internet ultra con velocidad de 500 Mbps",
    "price": 120000,
    "category": "Internet",
}


def test_create_service(client, make_user, login):
    make_user()
    response = client.post(
        "/api/services", json=SERVICE_PAYLOAD, headers=login("owner@example.com")
    )
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()["data"]
    assert data["name"] == SERVICE_PAYLOAD["name"]
    assert data["category"] == "Internet"
    assert data["price"] == 120000


def test_create_service_requires_token(client):
    response = client.post("/api/services", json=SERVICE_PAYLOAD)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_create_service_duplicate_name(client, make_user, make_service, login):
    make_user()
    make_service(name=SERVICE_PAYLOAD["name"])
    response = client.post(
        "/api/services", json=SERVICE_PAYLOAD, headers=login("owner@example.com")
    )
    assert response.status_code == status.HTTP_409_CONFLICT


def test_create_service_rejects_negative_price_and_unknown_category(
    client, make_user, login
):
    make_user()
    headers = login("owner@example.com")
    negative = client.post(
        "/api/services", json={**SERVICE_PAYLOAD, "price": -1}, headers=headers
    )
    assert negative.status_code == status.HTTP_400_BAD_REQUEST
    assert negative.json()["errors"][0]["field"] == "price"

    unknown = client.post(
        "/api/services", json={**SERVICE_PAYLOAD, "category": "Telefonía"}, headers=headers
    )
    assert unknown.status_code == status.HTTP_400_BAD_REQUEST


def test_catalog_is_readable_without_token(client, make_service):
    service = make_service()
    listing = client.get("/api/services")
    assert listing.status_code == status.HTTP_200_OK
    assert listing.json()["data"]["services"][0]["id"] == service.id

    single = client.get(f"/api/services/{service.id}")
    assert single.status_code == status.HTTP_200_OK
    assert single.json()["data"]["name"] == service.name


def test_list_services_filters_and_paginates(client, make_service):
    make_service(name="Internet A")
    make_service(name="Internet B")
    make_service(
        name="TV Básica", category="Televisión", description="Paquete básico de TV"
    )

    tv = client.get("/api/services", params={"category": "Televisión"}).json()["data"]
    assert [s["name"] for s in tv["services"]] == ["TV Básica"]

    page = client.get("/api/services", params={"page": 2, "limit": 2}).json()["data"]
    assert len(page["services"]) == 1
    assert page["pagination"] == {
        "current_page": 2,
        "page_size": 2,
        "total_pages": 2,
        "total": 3,
        "has_next_page": False,
        "has_prev_page": True,
    }


def test_list_services_rejects_out_of_range_limit(client):
    response = client.get("/api/services", params={"limit": 101})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_get_missing_service(client):
    response = client.get("/api/services/9999")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["message"] == "Service not found"


def test_update_service_partially(client, make_user, make_service, login):
    make_user()
    service = make_service()
    response = client.put(
        f"/api/services/{service.id}",
        json={"price": 50000},
        headers=login("owner@example.com"),
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()["data"]
    assert data["price"] == 50000
    assert data["name"] == service.name


def test_update_service_rename_onto_existing(client, make_user, make_service, login):
    make_user()
    make_service(name="Plan Uno")
    second = make_service(name="Plan Dos")
    response = client.put(
        f"/api/services/{second.id}",
        json={"name": "Plan Uno"},
        headers=login("owner@example.com"),
    )
    assert response.status_code == status.HTTP_409_CONFLICT


def test_delete_unused_service(client, make_user, make_service, login):
    make_user()
    service_id = make_service().id
    headers = login("owner@example.com")
    response = client.delete(f"/api/services/{service_id}", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    assert client.get(f"/api/services/{service_id}").status_code == 404


def test_delete_service_in_use(client, make_user, make_service, login):
    make_user()
    service = make_service()
    headers = login("owner@example.com")
    start = date.today() + timedelta(days=1)
    created = client.post(
        "/api/contracts",
        json={
            "number": "TEL-001",
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=365)).isoformat(),
            "service_ids": [service.id],
        },
        headers=headers,
    )
    assert created.status_code == status.HTTP_201_CREATED

    response = client.delete(f"/api/services/{service.id}", headers=headers)
    assert response.status_code == status.HTTP_409_CONFLICT
    body = response.json()
    assert body["success"] is False
    assert body["data"] == {"contractsCount": 1}


def test_count_contracts_using_service_without_contracts(db_session, make_service):
    service = make_service()
    assert crud.count_contracts_using_service(db_session, service.id) == 0


def _contract_on(db_session, owner, service_id):
    start = date.today() + timedelta(days=1)
    return ledger.create_contract(
        db_session,
        Identity.from_model(owner),
        ContractCreate(
            number="TEL-500",
            start_date=start,
            end_date=start + timedelta(days=30),
            service_ids=[service_id],
        ),
    )


def test_database_refuses_to_drop_referenced_service(
    client, db_session, make_user, make_service, login
):
    owner = make_user()
    service_id = make_service().id
    headers = login("owner@example.com")
    contract_id = _contract_on(db_session, owner, service_id).id

    with pytest.raises(IntegrityError):
        db_session.execute(delete(models.Service).where(models.Service.id == service_id))
    db_session.rollback()

    response = client.get(f"/api/contracts/{contract_id}", headers=headers)
    assert [s["id"] for s in response.json()["data"]["services"]] == [service_id]


def test_delete_service_in_use_caught_at_commit(
    db_session, make_user, make_service, monkeypatch
):
    owner = make_user()
    service_id = make_service().id
    _contract_on(db_session, owner, service_id)

    monkeypatch.setattr(crud, "count_contracts_using_service", lambda db, sid: 0)
    with pytest.raises(ConflictError) as exc_info:
        crud.delete_service(db_session, service_id)
    assert exc_info.value.reason == "ServiceInUse"
    assert db_session.get(models.Service, service_id) is not None
