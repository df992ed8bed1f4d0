# src/scheduler/tasks.py
import logging
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session
from database import SessionLocal
from subscription.services import SubscriptionService
from config import settings

logger = logging.getLogger(__name__)

def expire_lapsed_subscriptions():
    """Expire local-only subscriptions whose period has ended."""
    logger.info("Starting expire_lapsed_subscriptions task")
    db: Session = SessionLocal()
    try:
        count = SubscriptionService.expire_lapsed_subscriptions(db)
        logger.info(f"Finished expire_lapsed_subscriptions task, {count} expired")
        return count
    except Exception as e:
        db.rollback()
        logger.error(f"Error in expire_lapsed_subscriptions: {str(e)}")
        raise
    finally:
        db.close()

def start_scheduler() -> BackgroundScheduler:
    """Start the background scheduler."""
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        expire_lapsed_subscriptions, 'interval',
        minutes=settings.EXPIRY_SWEEP_INTERVAL_MINUTES,
        id="expire_lapsed_subscriptions",
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    return scheduler
