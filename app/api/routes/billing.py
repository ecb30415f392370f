"""
Subscription endpoints for the authenticated user.
"""
import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth_dependency import CurrentUser, get_current_user
from app.db.session import get_db
from app.schemas.billing import (
    BILLING_ERROR_RESPONSES,
    CreateCheckoutSessionRequest,
    CreatePortalSessionRequest,
    RedirectResponse,
    SyncResponse,
)
from app.services.billing_service import (
    create_checkout_session,
    create_portal_session,
    get_subscription_view,
)
from app.services.stripe_service import StripeBillingClient, get_billing_client
from app.services.sync_service import sync_subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"], responses=BILLING_ERROR_RESPONSES)


@router.get("/subscription")
def read_subscription(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    billing: StripeBillingClient = Depends(get_billing_client)
):
    """Current subscription record with live Stripe details, or null."""
    return get_subscription_view(db, billing, user.id)


@router.post("/sync", response_model=SyncResponse)
def sync_own_subscription(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    billing: StripeBillingClient = Depends(get_billing_client)
):
    """Pull the current Stripe state into the user's record."""
    return sync_subscription(db, billing, user.id).to_dict()


@router.post("/checkout", response_model=RedirectResponse)
def checkout(
    request: CreateCheckoutSessionRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    billing: StripeBillingClient = Depends(get_billing_client)
):
    """Create a Stripe Checkout session for the pro plan."""
    url = create_checkout_session(
        db,
        billing,
        user.id,
        user.email,
        price_id=request.price_id,
        success_url=request.success_url,
        cancel_url=request.cancel_url,
    )
    return {"url": url}


@router.post("/portal", response_model=RedirectResponse)
def portal(
    request: CreatePortalSessionRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    billing: StripeBillingClient = Depends(get_billing_client)
):
    """Create a Stripe customer portal session."""
    url = create_portal_session(db, billing, user.id, return_url=request.return_url)
    return {"url": url}
