# src/subscription/models.py
import enum
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Enum, Index, text
from sqlalchemy.orm import relationship
from database import Base
from datetime import datetime

class SubscriptionStatus(str, enum.Enum):
    TRIALING = "TRIALING"
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"

TERMINAL_STATUSES = (SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED)
OPEN_STATUSES = (SubscriptionStatus.TRIALING, SubscriptionStatus.ACTIVE, SubscriptionStatus.PAST_DUE)
# statuses that grant access to premium content
ENTITLED_STATUSES = (SubscriptionStatus.TRIALING, SubscriptionStatus.ACTIVE)

_OPEN_STATUS_SQL = "status IN ('TRIALING', 'ACTIVE', 'PAST_DUE')"

class Subscription(Base):
    """A user's relationship to one offer."""
    __tablename__ = "subscriptions"
    __table_args__ = (
        # at most one non-terminal subscription per (user, offer)
        Index(
            "uq_subscriptions_open_user_offer",
            "user_id",
            "offer_id",
            unique=True,
            postgresql_where=text(_OPEN_STATUS_SQL),
            sqlite_where=text(_OPEN_STATUS_SQL),
        ),
    )

    id: int = Column(Integer, primary_key=True, index=True)
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    offer_id: int = Column(Integer, ForeignKey("offers.id"), nullable=False, index=True)
    status: SubscriptionStatus = Column(Enum(SubscriptionStatus), nullable=False)
    stripe_subscription_id: str = Column(String, unique=True, nullable=True)  # None for one-time purchases
    stripe_checkout_session_id: str = Column(String, unique=True, nullable=True)
    current_period_end: datetime = Column(DateTime, nullable=True)  # None for lifetime
    trial_ends_at: datetime = Column(DateTime, nullable=True)
    cancel_at_period_end: bool = Column(Boolean, nullable=False, default=False)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="subscriptions")
    offer = relationship("Offer", back_populates="subscriptions")
