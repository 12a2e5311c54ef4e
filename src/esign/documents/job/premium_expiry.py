import logging
from apscheduler.schedulers.background import BackgroundScheduler
from database import SessionLocal
from esign.common.audit import LoggingAuditLogger
from esign.documents.services.cleanup import downgrade_expired_premium_users
from settings import settings

logger = logging.getLogger(__name__)


def run_premium_expiry():
    with SessionLocal() as session:
        downgraded = downgrade_expired_premium_users(session, LoggingAuditLogger())
    logger.info("Premium expiry check done, %d user(s) downgraded", len(downgraded))


def start_premium_expiry_job() -> BackgroundScheduler:
    scheduler = BackgroundScheduler()
    # every day at 00:05 by default
    scheduler.add_job(
        run_premium_expiry,
        'cron',
        hour=settings.premium_expiry_hour,
        minute=settings.premium_expiry_minute,
        id='premium_expiry',
        replace_existing=True
    )
    scheduler.start()
    return scheduler
