"""
Subscription reconciliation with Stripe.

Overwrites the billing-derived fields of a local record from the first
subscription Stripe reports for the record's customer. Used to repair
drift; re-running against unchanged remote state leaves the record
untouched.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.errors import BillingError, NotFoundError
from app.db.models.subscription import Subscription
from app.services.stripe_service import RemoteSubscription, StripeBillingClient
from app.services.subscription_store import (
    get_subscription,
    list_subscriptions_with_customer,
    update_subscription,
)

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    message: str
    synced: bool
    plan: Optional[str] = None
    status: Optional[str] = None
    changed: bool = False

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "synced": self.synced,
            "plan": self.plan,
            "status": self.status,
            "changed": self.changed,
        }


@dataclass
class SyncStats:
    """Batch reconciliation statistics."""
    checked: int = 0
    synced: int = 0
    changed: int = 0
    skipped: int = 0
    errors: int = 0
    failures: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "checked": self.checked,
            "synced": self.synced,
            "changed": self.changed,
            "skipped": self.skipped,
            "errors": self.errors,
            "failures": dict(self.failures),
        }


def _normalize(value: Any) -> Any:
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def derived_fields(remote: RemoteSubscription) -> Dict[str, Any]:
    """Local billing-derived fields implied by a remote subscription."""
    is_active = remote.status == "active"
    return {
        "stripe_subscription_id": remote.id,
        "status": remote.status,
        "plan": "pro" if is_active else "free",
        "current_period_start": remote.current_period_start,
        "current_period_end": remote.current_period_end,
        "cancel_at_period_end": bool(remote.cancel_at_period_end),
    }


def sync(db: Session, billing: StripeBillingClient, record: Subscription) -> SyncResult:
    """
    Reconcile one record against Stripe.
    
    Raises:
        NotFoundError: The Stripe customer was deleted or does not exist
        RemoteProviderError: Stripe could not be reached
        StoreError: The local write failed
    """
    user_id = record.user_id
    if not record.stripe_customer_id:
        logger.info(f"Sync skipped, no Stripe customer: user_id={user_id}")
        return SyncResult(
            message="No active Stripe subscription found",
            synced=False,
            plan=record.plan,
            status=record.status,
        )
    
    customer = billing.retrieve_customer(record.stripe_customer_id)
    if not customer.subscriptions:
        logger.info(f"Sync found no Stripe subscriptions: user_id={user_id}, customer_id={customer.id}")
        return SyncResult(
            message="No active Stripe subscription found",
            synced=False,
            plan=record.plan,
            status=record.status,
        )
    
    remote = customer.subscriptions[0]
    fields = derived_fields(remote)
    changes = {
        name: value
        for name, value in fields.items()
        if _normalize(getattr(record, name)) != _normalize(value)
    }
    
    if changes:
        update_subscription(db, user_id, **changes)
        logger.info(
            f"Subscription synced: user_id={user_id}, subscription_id={remote.id}, "
            f"status={remote.status}, changed={sorted(changes)}"
        )
    else:
        logger.info(f"Subscription already in sync: user_id={user_id}, subscription_id={remote.id}")
    
    return SyncResult(
        message="Subscription synced successfully",
        synced=True,
        plan=fields["plan"],
        status=remote.status,
        changed=bool(changes),
    )


def sync_subscription(db: Session, billing: StripeBillingClient, user_id: str) -> SyncResult:
    """Reconcile the record of one user. NotFoundError when the user has no record."""
    record = get_subscription(db, user_id)
    if not record:
        raise NotFoundError("No subscription found")
    return sync(db, billing, record)


def sync_all_subscriptions(db: Session, billing: StripeBillingClient) -> SyncStats:
    """
    Reconcile every record that has a Stripe customer.
    
    A failure on one record is counted and logged; the batch continues.
    """
    stats = SyncStats()
    for record in list_subscriptions_with_customer(db):
        stats.checked += 1
        try:
            result = sync(db, billing, record)
        except BillingError as e:
            stats.errors += 1
            stats.failures[record.user_id] = f"{e.code}: {e.message}"
            logger.error(f"Sync failed: user_id={record.user_id}, error={e.code}: {e.message}")
            continue
        
        if result.synced:
            stats.synced += 1
            if result.changed:
                stats.changed += 1
        else:
            stats.skipped += 1
    
    logger.info(f"Batch sync complete: {stats.to_dict()}")
    return stats
