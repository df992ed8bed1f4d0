# src/content/models.py
import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Text, Float, DateTime, Enum
from sqlalchemy.orm import relationship
from database import Base
from datetime import datetime
from typing import Optional
from offer.models import Sport

class TipVisibility(str, enum.Enum):
    FREE = "FREE"
    PREMIUM = "PREMIUM"

class TipResult(str, enum.Enum):
    WON = "WON"
    LOST = "LOST"
    # stake returned
    VOID = "VOID"

class Tip(Base):
    """Represents a betting tip published by a tipster."""
    __tablename__ = "tips"

    id: int = Column(Integer, primary_key=True, index=True)
    tipster_id: int = Column(Integer, ForeignKey("tipsters.id"), nullable=False, index=True)
    event: str = Column(String, nullable=False)
    prediction: str = Column(Text, nullable=False)
    odds: float = Column(Float, nullable=False)
    stake: float = Column(Float, nullable=False, default=1)
    explanation: Optional[str] = Column(Text, nullable=True)
    sport: Optional[Sport] = Column(Enum(Sport), nullable=True)
    visibility: TipVisibility = Column(Enum(TipVisibility), nullable=False, default=TipVisibility.PREMIUM)
    # null while pending; set once by the tipster
    result: Optional[TipResult] = Column(Enum(TipResult), nullable=True)
    settled_at: Optional[datetime] = Column(DateTime, nullable=True)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tipster = relationship("Tipster", back_populates="tips")
