"""
Billing service for user-facing subscription operations.

Handles subscription reads, manual pro overrides, and the Stripe checkout
and customer portal redirects.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import (
    STRIPE_PRICE_ID_PRO,
    CHECKOUT_SUCCESS_URL,
    CHECKOUT_CANCEL_URL,
    PORTAL_RETURN_URL,
)
from app.core.errors import BillingError, ClientError, NotFoundError
from app.db.models.subscription import Subscription
from app.services.entitlement_service import has_pro_access
from app.services.stripe_service import StripeBillingClient
from app.services.subscription_store import (
    get_subscription,
    get_or_create_subscription,
    update_subscription,
)

logger = logging.getLogger(__name__)


def get_subscription_view(db: Session, billing: StripeBillingClient, user_id: str) -> dict:
    """
    Get a user's subscription with live Stripe details.
    
    A failed Stripe read never hides the local record; it is reported in
    stripe_error instead.
    
    Returns:
        {"subscription": None} when the user has no record, otherwise the
        record fields plus is_pro, stripe_details and stripe_error
    """
    subscription = get_subscription(db, user_id)
    if not subscription:
        return {"subscription": None}
    
    details = None
    stripe_error = None
    if subscription.stripe_subscription_id:
        try:
            remote = billing.retrieve_subscription(subscription.stripe_subscription_id)
            details = {
                "id": remote.id,
                "status": remote.status,
                "current_period_start": remote.current_period_start,
                "current_period_end": remote.current_period_end,
                "cancel_at_period_end": remote.cancel_at_period_end,
            }
        except BillingError as e:
            logger.warning(f"Failed to fetch Stripe subscription: user_id={user_id}, error={e.message}")
            stripe_error = e.message
    
    return {
        "subscription": {
            **subscription.to_dict(),
            "is_pro": has_pro_access(subscription),
            "stripe_details": details,
            "stripe_error": stripe_error,
        }
    }


def set_pro_override(
    db: Session,
    user_id: str,
    override: bool,
    override_until: Optional[datetime] = None
) -> Subscription:
    """
    Grant or revoke a manual pro override.
    
    The override is independent of payment: plan and status are left alone.
    
    Args:
        db: Database session
        user_id: Target user
        override: True to grant, False to revoke
        override_until: Expiry instant, required when granting
        
    Returns:
        Updated subscription object
    """
    if override:
        if override_until is None:
            raise ClientError("override_until is required when granting an override")
        until = override_until if override_until.tzinfo else override_until.replace(tzinfo=timezone.utc)
        if until <= datetime.now(timezone.utc):
            raise ClientError("override_until must be in the future")
    
    get_or_create_subscription(db, user_id)
    subscription = update_subscription(
        db,
        user_id,
        pro_override=override,
        pro_override_until=override_until if override else None,
    )
    
    logger.info(f"Pro override updated: user_id={user_id}, override={override}, until={override_until}")
    return subscription


def create_checkout_session(
    db: Session,
    billing: StripeBillingClient,
    user_id: str,
    email: Optional[str],
    price_id: Optional[str] = None,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None
) -> str:
    """
    Create a Stripe checkout session for the pro subscription.
    
    Creates the local record and the Stripe customer on first use. The
    record only becomes pro once a later sync writes the remote state back.
    
    Returns:
        Checkout session URL
    """
    price_id = price_id or STRIPE_PRICE_ID_PRO
    if not price_id:
        raise ClientError("No price ID configured")
    
    subscription = get_or_create_subscription(db, user_id)
    customer_id = subscription.stripe_customer_id
    if not customer_id:
        customer_id = billing.create_customer(email, user_id)
        update_subscription(db, user_id, stripe_customer_id=customer_id)
    
    return billing.create_checkout_session(
        customer_id=customer_id,
        user_id=user_id,
        price_id=price_id,
        success_url=success_url or CHECKOUT_SUCCESS_URL,
        cancel_url=cancel_url or CHECKOUT_CANCEL_URL,
    )


def create_portal_session(
    db: Session,
    billing: StripeBillingClient,
    user_id: str,
    return_url: Optional[str] = None
) -> str:
    """
    Create a Stripe customer portal session.
    
    Returns:
        Portal session URL
    """
    subscription = get_subscription(db, user_id)
    if not subscription:
        raise NotFoundError("No subscription found")
    if not subscription.stripe_customer_id:
        raise ClientError("No Stripe customer found")
    
    return billing.create_billing_portal_session(
        subscription.stripe_customer_id,
        return_url or PORTAL_RETURN_URL,
    )
