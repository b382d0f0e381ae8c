"""
Provider-Service mapping model.

Many-to-many mapping between providers and the services they are qualified
to deliver. Booking a provider for a service it does not offer is rejected.
"""

from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class ProviderService(Base):
    """Mapping row: ``provider_id`` offers ``service_id``."""

    __tablename__ = "provider_services"

    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id", ondelete="CASCADE"), primary_key=True)
    """Reference to the provider offering the service."""

    service_id: Mapped[int] = mapped_column(ForeignKey("services.id", ondelete="CASCADE"), primary_key=True)
    """Reference to the service being offered."""
