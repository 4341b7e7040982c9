from __future__ import annotations

from sqlalchemy import inspect

from orderledger.db.base import Base
from orderledger.db.session import engine

# registers orders, payment_events and products on Base.metadata
from orderledger.models import order, payment_event, product  # noqa: F401


def create_all() -> list[str]:
    """Create missing tables and return the names that did not exist before."""
    existing = set(inspect(engine).get_table_names())
    Base.metadata.create_all(bind=engine)
    return [name for name in Base.metadata.tables if name not in existing]
