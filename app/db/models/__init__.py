"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.
"""
from app.db.models.subscription import Subscription
from app.db.models.usage import UsageEvent

__all__ = [
    "Subscription",
    "UsageEvent",
]
