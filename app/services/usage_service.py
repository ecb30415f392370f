"""
Analysis usage counting.

The counter owns per-client counting of completed analyses and produces the
raw eligibility flag consumed by the entitlement resolver. Pro access
(paid or a live manual override) lifts the free-tier cap.
"""
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.plan_limits import get_plan_limit
from app.db.models.usage import UsageEvent
from app.services.entitlement_service import has_pro_access
from app.services.subscription_store import get_subscription

logger = logging.getLogger(__name__)


def get_client_analysis_count(db: Session, user_id: str, client_id: str) -> int:
    """Number of analyses the user has run for one client."""
    count = db.query(func.count(UsageEvent.id)).filter(
        UsageEvent.user_id == user_id,
        UsageEvent.client_id == client_id,
    ).scalar()
    return int(count or 0)


def can_analyze_client(db: Session, user_id: str, client_id: str) -> bool:
    """
    Raw eligibility: pro users (paid or overridden) always, others while
    under the free-tier limit for this client.
    """
    if has_pro_access(get_subscription(db, user_id)):
        return True
    return get_client_analysis_count(db, user_id, client_id) < get_plan_limit("free")


def record_analysis(db: Session, user_id: str, client_id: str) -> UsageEvent:
    """Append one analysis event for a client."""
    event = UsageEvent(user_id=user_id, client_id=client_id)
    db.add(event)
    db.commit()
    db.refresh(event)
    
    logger.info(f"Analysis recorded: user_id={user_id}, client_id={client_id}")
    return event
