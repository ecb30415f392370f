"""
Quota enforcement dependency for the analysis feature.

require_analysis_quota() authenticates the user, resolves the entitlement
for the requested client and raises if the user may not run another
analysis.
"""
import logging
from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.auth_dependency import CurrentUser, get_current_user
from app.core.config import FRONTEND_URL
from app.db.session import get_db
from app.services.entitlement_service import check_entitlement
from app.services.usage_service import can_analyze_client, get_client_analysis_count

logger = logging.getLogger(__name__)


def entitlement_for_client(db: Session, user_id: str, client_id: str) -> dict:
    """Combine the usage counter's eligibility with the resolver's tier decision."""
    raw_allowed = can_analyze_client(db, user_id, client_id)
    usage_count = get_client_analysis_count(db, user_id, client_id)
    return check_entitlement(db, user_id, raw_allowed, usage_count)


def require_analysis_quota(
    client_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> CurrentUser:
    """
    Dependency that blocks an analysis when the entitlement denies it.
    
    Raises:
        HTTPException 402: Free-tier limit reached, with structured paywall detail
        HTTPException 401: Unauthorized
    """
    result = entitlement_for_client(db, user.id, client_id)
    
    if not result["allowed"]:
        logger.warning(
            f"Analysis limit reached: user_id={user.id}, client_id={client_id}, "
            f"count={result['currentCount']}, limit={result['limit']}"
        )
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "error": "analysis_limit_reached",
                "detail": "Analysis limit exceeded for this client. Upgrade to Pro for unlimited analyses.",
                "client_id": client_id,
                "limit": result["limit"],
                "used": result["currentCount"],
                "upgrade_url": f"{FRONTEND_URL}/settings",
            }
        )
    
    return user
