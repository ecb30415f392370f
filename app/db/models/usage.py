from sqlalchemy import Column, Integer, String, DateTime, Index
from sqlalchemy.sql import func
from app.db.base import Base


class UsageEvent(Base):
    """
    One completed analysis for a client, attributed to the owning user.

    Counted per (user, client) by the usage service.
    """
    __tablename__ = "analysis_events"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    client_id = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    # Composite index for per-client counting
    __table_args__ = (
        Index('idx_analysis_user_client', 'user_id', 'client_id'),
    )
