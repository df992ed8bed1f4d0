# src/offer/models.py
import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Text, Boolean, DateTime, Enum, JSON
from sqlalchemy.orm import relationship
from database import Base
from datetime import datetime
from config import settings

class SubscriptionDuration(str, enum.Enum):
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"
    LIFETIME = "LIFETIME"

class Sport(str, enum.Enum):
    FOOTBALL = "FOOTBALL"
    BASKETBALL = "BASKETBALL"
    TENNIS = "TENNIS"
    RUGBY = "RUGBY"
    MMA = "MMA"
    BOXING = "BOXING"
    ESPORTS = "ESPORTS"
    HOCKEY = "HOCKEY"
    VOLLEYBALL = "VOLLEYBALL"
    BASEBALL = "BASEBALL"
    AMERICAN_FOOTBALL = "AMERICAN_FOOTBALL"
    OTHER = "OTHER"

class Offer(Base):
    """A priced plan a tipster sells access through."""
    __tablename__ = "offers"

    id: int = Column(Integer, primary_key=True, index=True)
    tipster_id: int = Column(Integer, ForeignKey("tipsters.id"), nullable=False, index=True)
    name: str = Column(String, nullable=False)
    description: str = Column(Text, nullable=True)
    price: int = Column(Integer, nullable=False)  # minor units, 999 = 9.99
    currency: str = Column(String, nullable=False, default=settings.DEFAULT_CURRENCY)
    duration: SubscriptionDuration = Column(Enum(SubscriptionDuration), nullable=False)
    sports: list = Column(JSON, nullable=False, default=list)  # empty = every sport
    trial_days: int = Column(Integer, nullable=True)
    is_active: bool = Column(Boolean, nullable=False, default=True)
    stripe_product_id: str = Column(String, nullable=True)
    stripe_price_id: str = Column(String, nullable=True)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tipster = relationship("Tipster", back_populates="offers")
    subscriptions = relationship("Subscription", back_populates="offer")

    @property
    def is_one_time(self) -> bool:
        return self.duration == SubscriptionDuration.LIFETIME

    def covers_sport(self, sport) -> bool:
        """Whether this offer's sport scope grants access to a tip tagged ``sport``."""
        if not self.sports:
            return True
        # Untagged tips are covered by any scope; possibly broader than intended.
        if sport is None:
            return True
        value = sport.value if isinstance(sport, Sport) else sport
        return value in self.sports
