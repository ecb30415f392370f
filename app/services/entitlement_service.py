"""
Entitlement resolution for the metered analysis feature.

Pro access comes from either a paid active pro plan or an unexpired manual
override; the two grants are independent. Free users are limited by the
free-tier quota. The externally computed eligibility flag (which owns
counting) is always combined with, never replaced by, the tier decision.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.core.plan_limits import get_plan_limit
from app.db.models.subscription import Subscription
from app.services.subscription_store import get_subscription

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntitlementDecision:
    allowed: bool
    limit: Optional[int]  # None means unlimited
    is_pro: bool


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; stored values are always UTC
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def has_paid_pro(record: Optional[Subscription]) -> bool:
    return bool(record) and record.plan == "pro" and record.status == "active"


def has_active_override(record: Optional[Subscription], now: Optional[datetime] = None) -> bool:
    if not record or not record.pro_override:
        return False
    until = _as_utc(record.pro_override_until)
    if until is None:
        return False
    now = now or datetime.now(timezone.utc)
    return until > now


def has_pro_access(record: Optional[Subscription], now: Optional[datetime] = None) -> bool:
    """(plan = pro AND status = active) OR (override AND override_until > now)."""
    return has_paid_pro(record) or has_active_override(record, now)


def resolve(
    record: Optional[Subscription],
    usage_count: int,
    raw_allowed: bool,
    now: Optional[datetime] = None,
    free_limit: Optional[int] = None
) -> EntitlementDecision:
    """
    Derive the access decision for one user.
    
    Pure function of its inputs: an absent record is the free tier with no
    override.
    
    Args:
        record: Local subscription record, or None
        usage_count: Analyses already counted for the current window
        raw_allowed: Eligibility flag from the external counter
        now: Evaluation instant (defaults to current UTC time)
        free_limit: Free-tier quota (defaults to the configured plan limit)
        
    Returns:
        EntitlementDecision
    """
    is_pro = has_pro_access(record, now)
    if is_pro:
        return EntitlementDecision(allowed=raw_allowed, limit=None, is_pro=True)
    
    limit = free_limit if free_limit is not None else get_plan_limit("free")
    allowed = raw_allowed and usage_count < limit
    return EntitlementDecision(allowed=allowed, limit=limit, is_pro=False)


def check_entitlement(db: Session, user_id: str, raw_allowed: bool, usage_count: int) -> dict:
    """
    Check whether a user may run another analysis.
    
    Returns:
        Dictionary with allowed, currentCount, limit (None = unlimited), isPro
    """
    record = get_subscription(db, user_id)
    decision = resolve(record, usage_count, raw_allowed)
    
    logger.info(
        f"Entitlement checked: user_id={user_id}, allowed={decision.allowed}, "
        f"count={usage_count}, limit={decision.limit}, is_pro={decision.is_pro}"
    )
    
    return {
        "allowed": decision.allowed,
        "currentCount": usage_count,
        "limit": decision.limit,
        "isPro": decision.is_pro,
    }
