"""Populate the service catalog with the standard plans.

Usage::

    python -m app.seed

Existing services are replaced. Services that are still referenced by a
contract cannot be removed, in which case seeding stops without changes.
"""

import logging
import sys

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from . import crud, models
from .core import get_settings
from .database import SessionLocal, init_db
from .errors import ConflictError
from .logging_config import setup_logging

logger = logging.getLogger(__name__)

INTERNET = models.ServiceCategory.INTERNET
TELEVISION = models.ServiceCategory.TELEVISION

DEFAULT_SERVICES = [
    {
        "name": "Internet Básico 50MB",
        "description": "Plan de internet básico con velocidad de 50 Mbps, ideal para navegación y uso básico",
        "price": 45000,
        "category": INTERNET,
    },
    {
        "name": "Internet Estándar 100MB",
        "description": "Plan de internet estándar con velocidad de 100 Mbps, perfecto para streaming y trabajo remoto",
        "price": 65000,
        "category": INTERNET,
    },
    {
        "name": "Internet Premium 200MB",
        "description": "Plan de internet premium con velocidad de 200 Mbps, ideal para múltiples dispositivos y gaming",
        "price": 85000,
        "category": INTERNET,
    },
    {
        "name": "Internet Ultra 500MB",
        "description": "Plan de internet ultra con velocidad de 500 Mbps, para usuarios exigentes y empresas",
        "price": 120000,
        "category": INTERNET,
    },
    {
        "name": "TV Básica",
        "description": "Paquete básico de televisión con 50 canales nacionales e internacionales",
        "price": 35000,
        "category": TELEVISION,
    },
    {
        "name": "TV Estándar",
        "description": "Paquete estándar de televisión con 100 canales incluyendo deportes y películas",
        "price": 55000,
        "category": TELEVISION,
    },
    {
        "name": "TV Premium",
        "description": "Paquete premium de televisión con 150 canales, HD y contenido exclusivo",
        "price": 75000,
        "category": TELEVISION,
    },
    {
        "name": "TV Ultra + HBO",
        "description": "Paquete ultra de televisión con 200 canales, HD, 4K y HBO incluido",
        "price": 95000,
        "category": TELEVISION,
    },
]


def seed_services(db: Session, services: list[dict] | None = None) -> list[models.Service]:
    """
    Replace the catalog with ``services`` (the standard plans by default).

    Args:
        db (Session): Database session.
        services (list[dict] | None): Service definitions.

    Raises:
        ConflictError: ``ServiceInUse`` if any existing service is still
            referenced by a contract.

    Returns:
        list[Service]: The created services.
    """
    services = DEFAULT_SERVICES if services is None else services

    referenced = db.scalar(select(func.count()).select_from(models.contract_services)) or 0
    if referenced:
        raise ConflictError(
            "Catalog is referenced by existing contracts",
            reason="ServiceInUse",
            data={"contractsCount": referenced},
        )

    removed = db.execute(delete(models.Service)).rowcount
    logger.info("Removed %s existing services", removed)

    created = [models.Service(**definition) for definition in services]
    db.add_all(created)
    crud.commit_or_conflict(
        db, ConflictError("Duplicate service name in seed data", reason="DuplicateServiceName")
    )
    for service in created:
        db.refresh(service)
    return created


def summarize(services: list[models.Service]) -> dict:
    """Counts per category and the average price of ``services``."""
    by_category = {category.value: 0 for category in models.ServiceCategory}
    for service in services:
        by_category[service.category.value] += 1
    average = round(sum(s.price for s in services) / len(services)) if services else 0
    return {"total": len(services), "by_category": by_category, "average_price": average}


def main() -> int:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    init_db()
    db = SessionLocal()
    try:
        created = seed_services(db)
    except ConflictError as exc:
        logger.error("Seeding aborted: %s %s", exc.message, exc.data or "")
        return 1
    finally:
        db.close()

    summary = summarize(created)
    logger.info("Created %s services", summary["total"])
    for category, count in summary["by_category"].items():
        logger.info("  %s: %s", category, count)
    logger.info("Average price: $%s", f"{summary['average_price']:,}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
