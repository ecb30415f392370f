"""
Administrative subscription lifecycle actions.

Each action is an ordered pair of mutations: a remote phase against Stripe
(only when the record has a remote subscription) followed by a local phase
against the subscription store. A remote failure stops the action before
anything is written locally. A local failure after a successful remote
phase leaves local and remote disagreeing; it is logged as drift and
surfaced as a StoreError with remote_applied=True so the reconciler can
repair it. Nothing is retried here.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from app.core.errors import ClientError, NotFoundError, StoreError
from app.db.models.subscription import Subscription
from app.services.stripe_service import StripeBillingClient
from app.services.subscription_store import get_subscription, update_subscription

logger = logging.getLogger(__name__)


class ActionKind(str, Enum):
    PAUSE = "pause"
    RESUME = "resume"
    CANCEL = "cancel"
    CANCEL_AT_PERIOD_END = "cancel_at_period_end"
    REACTIVATE = "reactivate"
    REFUND_LAST = "refund_last"

    @classmethod
    def parse(cls, value: Any) -> "ActionKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ClientError(f"Unknown action: {value}")


@dataclass
class ActionResult:
    message: str
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"message": self.message, **self.extra}


def _two_phase(
    db: Session,
    record: Subscription,
    action: ActionKind,
    remote: Callable[[str], Any],
    local_fields: Dict[str, Any],
    message: str
) -> ActionResult:
    """Run the remote phase (if there is a remote subscription), then the local phase."""
    user_id = record.user_id
    subscription_id = record.stripe_subscription_id
    remote_applied = False
    
    if subscription_id:
        # RemoteProviderError propagates; the local phase never runs
        remote(subscription_id)
        remote_applied = True
        logger.info(f"Remote phase done: action={action.value}, user_id={user_id}, subscription_id={subscription_id}")
    else:
        logger.info(f"No remote subscription, local only: action={action.value}, user_id={user_id}")
    
    try:
        update_subscription(db, user_id, **local_fields)
    except (StoreError, NotFoundError) as e:
        if remote_applied:
            logger.error(
                f"Subscription drift: action={action.value} applied in Stripe but local write failed, "
                f"user_id={user_id}, subscription_id={subscription_id}, error={e.message}"
            )
            raise StoreError(
                f"Stripe change applied but local update failed: {e.message}",
                remote_applied=True,
            )
        raise
    
    logger.info(f"Lifecycle action complete: action={action.value}, user_id={user_id}")
    return ActionResult(message=message)


def _pause(db: Session, billing: StripeBillingClient, record: Subscription) -> ActionResult:
    return _two_phase(
        db, record, ActionKind.PAUSE,
        billing.pause_subscription,
        {"status": "paused"},
        "Subscription paused",
    )


def _resume(db: Session, billing: StripeBillingClient, record: Subscription) -> ActionResult:
    return _two_phase(
        db, record, ActionKind.RESUME,
        billing.resume_subscription,
        {"status": "active"},
        "Subscription resumed",
    )


def _cancel(db: Session, billing: StripeBillingClient, record: Subscription) -> ActionResult:
    # Immediate cancellation is a full reset and revokes any override too
    return _two_phase(
        db, record, ActionKind.CANCEL,
        billing.cancel_subscription,
        {
            "status": "canceled",
            "plan": "free",
            "stripe_subscription_id": None,
            "pro_override": False,
            "pro_override_until": None,
        },
        "Subscription canceled",
    )


def _cancel_at_period_end(db: Session, billing: StripeBillingClient, record: Subscription) -> ActionResult:
    return _two_phase(
        db, record, ActionKind.CANCEL_AT_PERIOD_END,
        lambda subscription_id: billing.set_cancel_at_period_end(subscription_id, True),
        {"cancel_at_period_end": True},
        "Subscription will cancel at period end",
    )


def _reactivate(db: Session, billing: StripeBillingClient, record: Subscription) -> ActionResult:
    return _two_phase(
        db, record, ActionKind.REACTIVATE,
        lambda subscription_id: billing.set_cancel_at_period_end(subscription_id, False),
        {"cancel_at_period_end": False},
        "Subscription reactivated",
    )


def _refund_last(db: Session, billing: StripeBillingClient, record: Subscription) -> ActionResult:
    """Refund the customer's most recent charge. Financial only; the record is not touched."""
    customer_id = record.stripe_customer_id
    if not customer_id:
        raise ClientError("No Stripe customer found")
    
    charges = billing.list_charges(customer_id, limit=1)
    if not charges:
        raise NotFoundError("No charges found to refund")
    
    last_charge = charges[0]
    if last_charge.refunded:
        raise NotFoundError("Last charge already refunded")
    
    refund_id = billing.create_refund(last_charge.id)
    
    logger.info(
        f"Refund issued: user_id={record.user_id}, charge_id={last_charge.id}, "
        f"amount={last_charge.amount}, currency={last_charge.currency}"
    )
    return ActionResult(
        message="Refund issued",
        extra={
            "amount": last_charge.amount / 100,
            "currency": last_charge.currency,
            "charge_id": last_charge.id,
            "refund_id": refund_id,
        },
    )


ACTION_HANDLERS: Dict[ActionKind, Callable[[Session, StripeBillingClient, Subscription], ActionResult]] = {
    ActionKind.PAUSE: _pause,
    ActionKind.RESUME: _resume,
    ActionKind.CANCEL: _cancel,
    ActionKind.CANCEL_AT_PERIOD_END: _cancel_at_period_end,
    ActionKind.REACTIVATE: _reactivate,
    ActionKind.REFUND_LAST: _refund_last,
}


def execute(
    db: Session,
    billing: StripeBillingClient,
    action: ActionKind,
    record: Subscription
) -> ActionResult:
    """Execute one lifecycle action against an existing record."""
    logger.info(
        f"Lifecycle action requested: action={action.value}, user_id={record.user_id}, "
        f"status={record.status}, subscription_id={record.stripe_subscription_id}"
    )
    return ACTION_HANDLERS[action](db, billing, record)


def run_lifecycle_action(
    db: Session,
    billing: StripeBillingClient,
    user_id: str,
    action: Any
) -> ActionResult:
    """
    Load a user's record and run an administrative action on it.
    
    The caller must already have authorized the request as an admin operation.
    
    Raises:
        ClientError: Unknown action, or refund without a billing customer
        NotFoundError: No record for the user, or nothing to refund
        RemoteProviderError: Stripe rejected the remote phase (nothing written locally)
        StoreError: Local write failed; remote_applied marks drift
    """
    kind = ActionKind.parse(action)
    record: Optional[Subscription] = get_subscription(db, user_id)
    if not record:
        raise NotFoundError("No subscription found")
    return execute(db, billing, kind, record)
