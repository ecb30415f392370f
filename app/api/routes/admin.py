"""
Administrative subscription endpoints.

All routes require the admin role on the caller's identity.
"""
import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth_dependency import CurrentUser, require_admin
from app.db.session import get_db
from app.schemas.billing import (
    AdminSyncRequest,
    SubscriptionActionRequest,
    SubscriptionOverrideRequest,
    BILLING_ERROR_RESPONSES,
    SyncResponse,
)
from app.services.billing_service import set_pro_override
from app.services.entitlement_service import has_pro_access
from app.services.lifecycle_service import run_lifecycle_action
from app.services.stripe_service import StripeBillingClient, get_billing_client
from app.services.sync_service import sync_subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"], responses=BILLING_ERROR_RESPONSES)


@router.post("/subscription-action")
def subscription_action(
    request: SubscriptionActionRequest,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
    billing: StripeBillingClient = Depends(get_billing_client)
):
    """
    Run a lifecycle action on a user's subscription.
    
    Actions: pause, resume, cancel, cancel_at_period_end, reactivate, refund_last.
    """
    logger.info(f"Admin action: admin_id={admin.id}, user_id={request.user_id}, action={request.action}")
    result = run_lifecycle_action(db, billing, request.user_id, request.action)
    return result.to_dict()


@router.post("/subscription-override")
def subscription_override(
    request: SubscriptionOverrideRequest,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Grant or revoke a time-bounded pro override."""
    logger.info(
        f"Admin override: admin_id={admin.id}, user_id={request.user_id}, "
        f"override={request.override}, until={request.override_until}"
    )
    subscription = set_pro_override(db, request.user_id, request.override, request.override_until)
    return {
        "message": "Override granted" if request.override else "Override revoked",
        "subscription": {**subscription.to_dict(), "is_pro": has_pro_access(subscription)},
    }


@router.post("/sync-subscription", response_model=SyncResponse)
def admin_sync_subscription(
    request: AdminSyncRequest,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
    billing: StripeBillingClient = Depends(get_billing_client)
):
    """Repair drift for one user by pulling Stripe state into the local record."""
    logger.info(f"Admin sync: admin_id={admin.id}, user_id={request.user_id}")
    return sync_subscription(db, billing, request.user_id).to_dict()
