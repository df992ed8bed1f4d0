# src/payment/models.py
from sqlalchemy import Column, String, DateTime
from database import Base
from datetime import datetime

class WebhookEvent(Base):
    """A processor event that has been applied to the ledger."""
    __tablename__ = "webhook_events"

    id: str = Column(String, primary_key=True)  # processor event id
    event_type: str = Column(String, nullable=False)
    processed_at: datetime = Column(DateTime, nullable=False, default=datetime.utcnow)
