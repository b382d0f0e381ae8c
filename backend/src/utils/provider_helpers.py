"""
Provider and service lookup helpers shared by the scheduling services.

Consolidates the "fetch or 404" lookups so every service reports a missing
provider or service the same way.
"""

import logging

from sqlalchemy.orm import Session

from core.exceptions import RecordNotFound
from models import Provider, ProviderService, Service

logger = logging.getLogger(__name__)


def get_provider(db: Session, provider_id: int, active_only: bool = True) -> Provider:
    """
    Get a provider by ID.

    Args:
        db: Database session
        provider_id: Provider ID
        active_only: Treat inactive providers as missing

    Raises:
        RecordNotFound: If the provider does not exist (or is inactive)
    """
    query = db.query(Provider).filter(Provider.id == provider_id)
    if active_only:
        query = query.filter(Provider.is_active == True)
    provider = query.first()
    if not provider:
        raise RecordNotFound(f"Provider {provider_id} not found")
    return provider


def get_service(db: Session, service_id: int) -> Service:
    """Get a service by ID. Raises RecordNotFound if missing."""
    service = db.query(Service).filter(Service.id == service_id).first()
    if not service:
        raise RecordNotFound(f"Service {service_id} not found")
    return service


def provider_offers_service(db: Session, provider_id: int, service_id: int) -> bool:
    """Check if a provider offers a specific service."""
    mapping = db.query(ProviderService).filter(
        ProviderService.provider_id == provider_id,
        ProviderService.service_id == service_id
    ).first()
    return mapping is not None


def get_provider_and_service(db: Session, provider_id: int, service_id: int) -> tuple[Provider, Service]:
    """
    Validate a provider/service pair.

    Raises:
        RecordNotFound: If either is missing or the provider does not offer the service
    """
    provider = get_provider(db, provider_id)
    service = get_service(db, service_id)
    if not provider_offers_service(db, provider_id, service_id):
        raise RecordNotFound(f"Provider {provider_id} does not offer service {service_id}")
    return provider, service


def get_providers_for_service(db: Session, service_id: int) -> list[Provider]:
    """
    Active providers offering a service, ordered by ID.

    Used when the patient lets the clinic pick the provider.

    Raises:
        RecordNotFound: If the service does not exist
    """
    get_service(db, service_id)
    return db.query(Provider).join(
        ProviderService, ProviderService.provider_id == Provider.id
    ).filter(
        ProviderService.service_id == service_id,
        Provider.is_active == True
    ).order_by(Provider.id).all()
