"""
Plan-based usage limits configuration.

Single source of truth for analysis quotas per plan.
None means unlimited quota for that feature.
"""
from typing import Dict, Optional

from app.core.config import FREE_ANALYSIS_LIMIT

# Plan limits (per client)
PLAN_LIMITS: Dict[str, Dict[str, Optional[int]]] = {
    "free": {
        "analysis": FREE_ANALYSIS_LIMIT,
    },
    "pro": {
        "analysis": None,  # Unlimited
    },
}


def get_plan_limit(plan_type: str, feature: str = "analysis") -> Optional[int]:
    """
    Get the limit for a feature in a given plan.
    
    Args:
        plan_type: Plan type (free, pro)
        feature: Feature name
        
    Returns:
        Limit (int) or None for unlimited
    """
    plan_type = plan_type.lower() if plan_type else "free"
    limits = PLAN_LIMITS.get(plan_type, PLAN_LIMITS["free"])
    return limits.get(feature)
