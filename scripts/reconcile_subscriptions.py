"""
Reconcile every subscription record that has a Stripe customer.
Repairs drift left by lifecycle actions whose local write failed.
Run: python -m scripts.reconcile_subscriptions
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.config import LOG_LEVEL
from app.core.logging_config import setup_logging
from app.db.session import SessionLocal
from app.services.stripe_service import StripeBillingClient
from app.services.sync_service import sync_all_subscriptions
import logging

logger = logging.getLogger(__name__)


def reconcile_all() -> bool:
    """Sync all records; True when no record failed."""
    db = SessionLocal()
    try:
        stats = sync_all_subscriptions(db, StripeBillingClient())
    finally:
        db.close()
    
    logger.info(
        f"Reconciliation finished: checked={stats.checked}, synced={stats.synced}, "
        f"changed={stats.changed}, skipped={stats.skipped}, errors={stats.errors}"
    )
    for user_id, error in stats.failures.items():
        logger.error(f"Needs attention: user_id={user_id}, error={error}")
    
    return stats.errors == 0


if __name__ == "__main__":
    setup_logging(LOG_LEVEL)
    
    if reconcile_all():
        print("\n[SUCCESS] All subscriptions reconciled")
    else:
        print("\n[ERROR] Some subscriptions could not be reconciled, see logs")
        sys.exit(1)
