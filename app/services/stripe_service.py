"""
Stripe billing provider client.

Thin wrapper around the stripe SDK used by the lifecycle executor, the
reconciler and the checkout/portal redirects. Responses are mapped to small
typed records and every SDK failure is re-raised as a RemoteProviderError
(or NotFoundError for missing resources) carrying Stripe's message.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

import stripe

from app.core.config import STRIPE_SECRET_KEY
from app.core.errors import ClientError, NotFoundError, RemoteProviderError

logger = logging.getLogger(__name__)

# Initialize Stripe client
if STRIPE_SECRET_KEY:
    stripe.api_key = STRIPE_SECRET_KEY
else:
    logger.warning("STRIPE_SECRET_KEY not configured - Stripe features disabled")


@dataclass
class RemoteSubscription:
    id: str
    status: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False


@dataclass
class RemoteCustomer:
    id: str
    deleted: bool = False
    subscriptions: List[RemoteSubscription] = field(default_factory=list)


@dataclass
class RemoteCharge:
    id: str
    amount: int  # minor units
    currency: str
    refunded: bool = False


def _field(obj: Any, name: str) -> Any:
    """Read a field from a StripeObject or a plain dict."""
    if obj is None:
        return None
    try:
        return obj[name]
    except (KeyError, TypeError):
        return getattr(obj, name, None)


def _timestamp(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _to_subscription(obj: Any) -> RemoteSubscription:
    period_start = _field(obj, "current_period_start")
    period_end = _field(obj, "current_period_end")
    
    # Newer API versions report billing periods on the subscription items
    if period_start is None or period_end is None:
        items = _field(_field(obj, "items"), "data") or []
        if items:
            period_start = period_start or _field(items[0], "current_period_start")
            period_end = period_end or _field(items[0], "current_period_end")
    
    return RemoteSubscription(
        id=_field(obj, "id"),
        status=_field(obj, "status"),
        current_period_start=_timestamp(period_start),
        current_period_end=_timestamp(period_end),
        cancel_at_period_end=bool(_field(obj, "cancel_at_period_end")),
    )


def _to_charge(obj: Any) -> RemoteCharge:
    return RemoteCharge(
        id=_field(obj, "id"),
        amount=_field(obj, "amount") or 0,
        currency=_field(obj, "currency"),
        refunded=bool(_field(obj, "refunded")),
    )


def _provider_error(operation: str, e: Exception, missing_is_not_found: bool = False) -> Exception:
    """
    Translate a Stripe SDK error into the service error taxonomy.
    
    Only lookups that treat a missing resource as a domain outcome pass
    missing_is_not_found; everywhere else it is a provider failure.
    """
    message = getattr(e, "user_message", None) or str(e)
    if missing_is_not_found and getattr(e, "code", None) == "resource_missing":
        logger.warning(f"Stripe resource missing during {operation}: {message}")
        return NotFoundError(message)
    logger.error(f"Stripe error during {operation}: {message}")
    return RemoteProviderError(message)


class StripeBillingClient:
    """
    Remote subscription, customer and charge operations.
    
    The provider is an independent authority: any call may fail or time out
    regardless of the local store, and callers must treat failures as
    definitive for the current request.
    """
    
    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key or STRIPE_SECRET_KEY
    
    def _require_configured(self) -> None:
        if not self.api_key:
            raise ClientError("Stripe not configured - STRIPE_SECRET_KEY required")
    
    def retrieve_subscription(self, subscription_id: str) -> RemoteSubscription:
        self._require_configured()
        try:
            obj = stripe.Subscription.retrieve(subscription_id, api_key=self.api_key)
        except stripe.StripeError as e:
            raise _provider_error("subscription retrieve", e)
        return _to_subscription(obj)
    
    def pause_subscription(self, subscription_id: str) -> RemoteSubscription:
        """Pause collection; invoices created while paused are voided."""
        self._require_configured()
        try:
            obj = stripe.Subscription.modify(
                subscription_id,
                pause_collection={"behavior": "void"},
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            raise _provider_error("subscription pause", e)
        logger.info(f"Paused Stripe subscription: subscription_id={subscription_id}")
        return _to_subscription(obj)
    
    def resume_subscription(self, subscription_id: str) -> RemoteSubscription:
        self._require_configured()
        try:
            # Empty string unsets pause_collection
            obj = stripe.Subscription.modify(
                subscription_id,
                pause_collection="",
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            raise _provider_error("subscription resume", e)
        logger.info(f"Resumed Stripe subscription: subscription_id={subscription_id}")
        return _to_subscription(obj)
    
    def cancel_subscription(self, subscription_id: str) -> RemoteSubscription:
        self._require_configured()
        try:
            obj = stripe.Subscription.cancel(subscription_id, api_key=self.api_key)
        except stripe.StripeError as e:
            raise _provider_error("subscription cancel", e)
        logger.info(f"Canceled Stripe subscription: subscription_id={subscription_id}")
        return _to_subscription(obj)
    
    def set_cancel_at_period_end(self, subscription_id: str, cancel_at_period_end: bool) -> RemoteSubscription:
        self._require_configured()
        try:
            obj = stripe.Subscription.modify(
                subscription_id,
                cancel_at_period_end=cancel_at_period_end,
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            raise _provider_error("subscription update", e)
        logger.info(
            f"Updated Stripe subscription: subscription_id={subscription_id}, "
            f"cancel_at_period_end={cancel_at_period_end}"
        )
        return _to_subscription(obj)
    
    def retrieve_customer(self, customer_id: str) -> RemoteCustomer:
        """
        Retrieve a customer with its subscriptions expanded.
        
        Raises:
            NotFoundError: The customer does not exist or was deleted
        """
        self._require_configured()
        try:
            obj = stripe.Customer.retrieve(customer_id, expand=["subscriptions"], api_key=self.api_key)
        except stripe.StripeError as e:
            raise _provider_error("customer retrieve", e, missing_is_not_found=True)
        
        if _field(obj, "deleted"):
            logger.warning(f"Stripe customer deleted: customer_id={customer_id}")
            raise NotFoundError("Customer deleted")
        
        subscriptions = _field(_field(obj, "subscriptions"), "data") or []
        return RemoteCustomer(
            id=_field(obj, "id"),
            subscriptions=[_to_subscription(sub) for sub in subscriptions],
        )
    
    def list_charges(
        self,
        customer_id: str,
        limit: int = 1,
        created_after: Optional[datetime] = None
    ) -> List[RemoteCharge]:
        """List a customer's charges, most recent first."""
        self._require_configured()
        params = {"customer": customer_id, "limit": limit}
        if created_after:
            params["created"] = {"gte": int(created_after.timestamp())}
        try:
            result = stripe.Charge.list(api_key=self.api_key, **params)
        except stripe.StripeError as e:
            raise _provider_error("charge list", e)
        return [_to_charge(charge) for charge in (_field(result, "data") or [])]
    
    def create_refund(self, charge_id: str) -> str:
        """Refund a charge in full. Returns the refund id."""
        self._require_configured()
        try:
            refund = stripe.Refund.create(charge=charge_id, api_key=self.api_key)
        except stripe.StripeError as e:
            raise _provider_error("refund create", e)
        logger.info(f"Created refund: charge_id={charge_id}, refund_id={_field(refund, 'id')}")
        return _field(refund, "id")
    
    def create_customer(self, email: Optional[str], user_id: str) -> str:
        """Create a customer tagged with our user id. Returns the customer id."""
        self._require_configured()
        try:
            customer = stripe.Customer.create(
                email=email,
                metadata={"user_id": user_id},
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            raise _provider_error("customer create", e)
        logger.info(f"Created Stripe customer: user_id={user_id}, customer_id={_field(customer, 'id')}")
        return _field(customer, "id")
    
    def create_checkout_session(
        self,
        customer_id: str,
        user_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str
    ) -> str:
        """Create a subscription Checkout session. Returns the redirect URL."""
        self._require_configured()
        try:
            session = stripe.checkout.Session.create(
                customer=customer_id,
                client_reference_id=user_id,
                mode="subscription",
                line_items=[{
                    "price": price_id,
                    "quantity": 1,
                }],
                success_url=success_url,
                cancel_url=cancel_url,
                metadata={"user_id": user_id},
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            raise _provider_error("checkout session create", e)
        logger.info(f"Created checkout session: user_id={user_id}, session_id={_field(session, 'id')}")
        return _field(session, "url")
    
    def create_billing_portal_session(self, customer_id: str, return_url: str) -> str:
        """Create a Billing Portal session. Returns the redirect URL."""
        self._require_configured()
        try:
            session = stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=return_url,
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            raise _provider_error("portal session create", e)
        logger.info(f"Created billing portal session: customer_id={customer_id}")
        return _field(session, "url")


def get_billing_client() -> StripeBillingClient:
    """Billing client dependency."""
    return StripeBillingClient()
