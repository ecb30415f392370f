"""
Pydantic schemas for billing and entitlement endpoints.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class CanAnalyzeRequest(BaseModel):
    """Request schema for the entitlement check."""
    client_id: str = Field(..., min_length=1, description="Client the analysis is for")


class CanAnalyzeResponse(BaseModel):
    """Entitlement decision for the next analysis."""
    allowed: bool
    currentCount: int
    limit: Optional[int] = Field(None, description="Free-tier limit, null when unlimited")
    isPro: bool

    class Config:
        json_schema_extra = {
            "example": {"allowed": True, "currentCount": 1, "limit": 3, "isPro": False}
        }


class CreateCheckoutSessionRequest(BaseModel):
    """Request schema for creating checkout session."""
    price_id: Optional[str] = Field(None, description="Stripe price ID, defaults to the configured pro price")
    success_url: Optional[str] = Field(None, description="URL to redirect after successful payment")
    cancel_url: Optional[str] = Field(None, description="URL to redirect if payment is canceled")


class CreatePortalSessionRequest(BaseModel):
    """Request schema for creating portal session."""
    return_url: Optional[str] = Field(None, description="URL to return to after portal session")


class RedirectResponse(BaseModel):
    """Checkout or portal redirect URL."""
    url: str

    class Config:
        json_schema_extra = {
            "example": {"url": "https://checkout.stripe.com/c/pay/cs_test_..."}
        }


class SyncResponse(BaseModel):
    message: str
    synced: bool
    plan: Optional[str] = None
    status: Optional[str] = None
    changed: bool = False


class SubscriptionActionRequest(BaseModel):
    """Admin lifecycle action for one user."""
    user_id: str = Field(..., min_length=1)
    action: str = Field(
        ...,
        description="pause | resume | cancel | cancel_at_period_end | reactivate | refund_last",
    )

    class Config:
        json_schema_extra = {
            "example": {"user_id": "8f14e45f-ceea-467f-a0e6-1b2c3d4e5f60", "action": "pause"}
        }


class SubscriptionOverrideRequest(BaseModel):
    """Admin grant or revocation of a manual pro override."""
    user_id: str = Field(..., min_length=1)
    override: bool
    override_until: Optional[datetime] = None


class AdminSyncRequest(BaseModel):
    user_id: str = Field(..., min_length=1)


class BillingErrorResponse(BaseModel):
    """Error response schema for billing operations."""
    error: str = Field(..., description="Error kind")
    detail: Optional[str] = Field(None, description="Additional error details")
    drift: Optional[bool] = Field(None, description="True when Stripe changed but the local record did not")

    class Config:
        json_schema_extra = {
            "example": {"error": "client_error", "detail": "Unknown action: archive"}
        }


# Error bodies produced by the BillingError handler in app.main
BILLING_ERROR_RESPONSES = {
    400: {"model": BillingErrorResponse, "description": "Invalid request"},
    404: {"model": BillingErrorResponse, "description": "Subscription, customer or charge not found"},
    500: {"model": BillingErrorResponse, "description": "Local store failure"},
    502: {"model": BillingErrorResponse, "description": "Stripe failure"},
}
