# src/follow/models.py
from sqlalchemy import Column, Integer, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from datetime import datetime

class Follow(Base):
    """A user following a tipster's feed. Free, and unrelated to subscriptions."""
    __tablename__ = "follows"
    __table_args__ = (UniqueConstraint("user_id", "tipster_id", name="uq_follows_user_tipster"),)

    id: int = Column(Integer, primary_key=True, index=True)
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    tipster_id: int = Column(Integer, ForeignKey("tipsters.id"), nullable=False, index=True)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    user = relationship("User")
    tipster = relationship("Tipster")
