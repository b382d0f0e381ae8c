"""initial_schema_baseline

Revision ID: 5c1e0a7d2b94
Revises: 
Create Date: 2026-10-19 09:00:00.000000

Baseline migration that creates the booking schema from the current model
definitions: providers and their working plans, services and specialities,
customers, the clinical registry mirror, the calendar event ledger and
working plan exceptions, and the municipality and medical center
catalogue.
"""
from typing import Sequence, Union
import sys
import os

# Add src directory to path to import models
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from alembic import op

# Import all models to ensure they're registered with Base.metadata
from core.database import Base
import models  # noqa: F401


# revision identifiers, used by Alembic.
revision: str = '5c1e0a7d2b94'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create all database tables from SQLAlchemy models.

    This includes the partial unique index uq_appointment_time_slot on
    calendar_events (provider_id, start_time) WHERE event_type = 'appointment',
    which turns a lost booking race into an IntegrityError.
    """
    Base.metadata.create_all(bind=op.get_bind())


def downgrade() -> None:
    """Drop all tables."""
    Base.metadata.drop_all(bind=op.get_bind())
