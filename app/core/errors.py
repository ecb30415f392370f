"""
Error taxonomy for entitlement and subscription lifecycle operations.

Every failure raised by the services is one of four kinds so that callers
can tell bad input, missing resources, provider failures and local
persistence failures apart.
"""
from typing import Optional


class BillingError(Exception):
    """Base class for all entitlement/billing errors."""

    code = "billing_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class ClientError(BillingError):
    """Bad or missing input: unknown action, missing billing reference."""

    code = "client_error"


class NotFoundError(BillingError):
    """No local record, no remote customer, nothing to refund."""

    code = "not_found"


class RemoteProviderError(BillingError):
    """The billing provider call failed or timed out."""

    code = "provider_error"


class StoreError(BillingError):
    """
    The local record store failed.

    remote_applied is True when the billing provider had already accepted
    the change, i.e. local and remote state now disagree (drift).
    """

    code = "store_error"

    def __init__(self, message: str, remote_applied: bool = False, code: Optional[str] = None):
        super().__init__(message, code)
        self.remote_applied = remote_applied

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["drift"] = self.remote_applied
        return payload
