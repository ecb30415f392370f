"""
Subscription record store.

Primary-key style access to the local subscription record of a user.
Every write that touches billing-derived fields stamps updated_at in the
same commit.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, StoreError
from app.db.models.subscription import Subscription

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {
    "plan",
    "status",
    "stripe_customer_id",
    "stripe_subscription_id",
    "current_period_start",
    "current_period_end",
    "cancel_at_period_end",
    "pro_override",
    "pro_override_until",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_subscription(db: Session, user_id: str) -> Optional[Subscription]:
    """Get the subscription record for a user, or None."""
    try:
        return db.query(Subscription).filter(Subscription.user_id == user_id).first()
    except SQLAlchemyError as e:
        logger.error(f"Failed to load subscription: user_id={user_id}, error={e}")
        raise StoreError(f"Failed to load subscription: {e}")


def get_or_create_subscription(db: Session, user_id: str) -> Subscription:
    """
    Get the subscription record for a user, creating a free one if missing.
    
    Records are created lazily on the first billing interaction with no
    billing references.
    """
    subscription = get_subscription(db, user_id)
    if subscription:
        return subscription
    
    now = utcnow()
    subscription = Subscription(
        user_id=user_id,
        plan="free",
        status="active",
        cancel_at_period_end=False,
        pro_override=False,
        created_at=now,
        updated_at=now,
    )
    try:
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to create subscription: user_id={user_id}, error={e}")
        raise StoreError(f"Failed to create subscription: {e}")
    
    logger.info(f"Created subscription record: user_id={user_id}, plan=free")
    return subscription


def update_subscription(db: Session, user_id: str, **fields) -> Subscription:
    """
    Apply a partial update to a user's subscription record.
    
    Args:
        db: Database session
        user_id: Owner of the record
        **fields: Columns to overwrite (see UPDATABLE_FIELDS)
        
    Returns:
        The refreshed subscription
        
    Raises:
        NotFoundError: No record exists for the user
        StoreError: The database rejected the write
    """
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown subscription fields: {sorted(unknown)}")
    
    subscription = get_subscription(db, user_id)
    if not subscription:
        raise NotFoundError("No subscription found")
    
    for name, value in fields.items():
        setattr(subscription, name, value)
    subscription.updated_at = utcnow()
    
    try:
        db.commit()
        db.refresh(subscription)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to update subscription: user_id={user_id}, fields={sorted(fields)}, error={e}")
        raise StoreError(f"Failed to update subscription: {e}")
    
    return subscription


def list_subscriptions_with_customer(db: Session) -> List[Subscription]:
    """All records that have a billing customer reference."""
    try:
        return (
            db.query(Subscription)
            .filter(Subscription.stripe_customer_id.isnot(None))
            .order_by(Subscription.id)
            .all()
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to list subscriptions: {e}")
        raise StoreError(f"Failed to list subscriptions: {e}")
