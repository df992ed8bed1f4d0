# src/auth/models.py
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from database import Base
from datetime import datetime

class User(Base):
    """Represents a user in the system."""
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)
    username: str = Column(String, unique=True, index=True, nullable=False)
    email: str = Column(String, unique=True, index=True, nullable=False)
    stripe_customer_id: str = Column(String, unique=True, nullable=True)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    tipster = relationship("Tipster", back_populates="user", uselist=False)
    subscriptions = relationship("Subscription", back_populates="user")
