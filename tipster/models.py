# src/tipster/models.py
from sqlalchemy import Column, Integer, String, ForeignKey, Text, Boolean, DateTime
from sqlalchemy.orm import relationship
from database import Base
from datetime import datetime

class Tipster(Base):
    """A publisher profile owned by exactly one user."""
    __tablename__ = "tipsters"

    id: int = Column(Integer, primary_key=True, index=True)
    user_id: int = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    display_name: str = Column(String, unique=True, nullable=False)
    bio: str = Column(Text, nullable=True)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="tipster")
    stripe_account = relationship("TipsterStripeAccount", back_populates="tipster", uselist=False)
    offers = relationship("Offer", back_populates="tipster")
    tips = relationship("Tip", back_populates="tipster")

class TipsterStripeAccount(Base):
    """The Connect account payouts are routed to."""
    __tablename__ = "tipster_stripe_accounts"

    id: int = Column(Integer, primary_key=True, index=True)
    tipster_id: int = Column(Integer, ForeignKey("tipsters.id"), unique=True, nullable=False)
    stripe_account_id: str = Column(String, unique=True, nullable=False)
    charges_enabled: bool = Column(Boolean, nullable=False, default=False)
    payouts_enabled: bool = Column(Boolean, nullable=False, default=False)
    onboarding_complete: bool = Column(Boolean, nullable=False, default=False)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tipster = relationship("Tipster", back_populates="stripe_account")
