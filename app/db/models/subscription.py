from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from app.db.base import Base


class Subscription(Base):
    """
    Local authoritative subscription record, one per user.

    Billing-derived fields (plan, status, period, cancel_at_period_end,
    stripe_subscription_id) mirror the remote provider; pro_override is a
    manual grant independent of payment.
    """
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, unique=True, index=True, nullable=False)

    plan = Column(String, nullable=False, default="free")  # free | pro
    status = Column(String, nullable=False, default="active")  # active | paused | canceled | <stripe status>

    stripe_customer_id = Column(String, unique=True, nullable=True, index=True)
    stripe_subscription_id = Column(String, unique=True, nullable=True)

    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)

    pro_override = Column(Boolean, nullable=False, default=False)
    pro_override_until = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "plan": self.plan,
            "status": self.status,
            "stripe_customer_id": self.stripe_customer_id,
            "stripe_subscription_id": self.stripe_subscription_id,
            "current_period_start": self.current_period_start,
            "current_period_end": self.current_period_end,
            "cancel_at_period_end": self.cancel_at_period_end,
            "pro_override": self.pro_override,
            "pro_override_until": self.pro_override_until,
            "updated_at": self.updated_at,
        }
