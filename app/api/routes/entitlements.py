"""
Analysis entitlement endpoints.
"""
import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.auth_dependency import CurrentUser, get_current_user
from app.core.quota_guard import entitlement_for_client, require_analysis_quota
from app.db.session import get_db
from app.schemas.billing import CanAnalyzeRequest, CanAnalyzeResponse
from app.services.usage_service import record_analysis

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Entitlements"])


@router.post("/can-analyze", response_model=CanAnalyzeResponse)
def can_analyze(
    request: CanAnalyzeRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Check whether the authenticated user may run another analysis for a client.
    
    Returns allowed, currentCount, limit (null when unlimited) and isPro.
    """
    return entitlement_for_client(db, user.id, request.client_id)


@router.post("/analyses/{client_id}", status_code=status.HTTP_201_CREATED)
def create_analysis(
    client_id: str,
    user: CurrentUser = Depends(require_analysis_quota),
    db: Session = Depends(get_db)
):
    """Record a completed analysis after the quota check passed."""
    event = record_analysis(db, user.id, client_id)
    return {"id": event.id, "client_id": client_id}
