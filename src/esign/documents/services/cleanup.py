import logging
from sqlalchemy.orm import Session
from esign.common.audit import AuditLogger, safe_audit
from esign.common.clock import utcnow
from esign.documents.models.user import User, UserStatus

logger = logging.getLogger(__name__)


def downgrade_expired_premium_users(session: Session, audit: AuditLogger = None) -> list[int]:
    """Moves every PREMIUM user whose premium_until has passed back to FREE."""
    now = utcnow()
    expired = session.query(User).filter(
        User.user_status == UserStatus.PREMIUM,
        User.premium_until < now
    ).all()

    if not expired:
        logger.info("No expired premium subscriptions")
        return []

    for user in expired:
        # premium_until is kept as history
        user.user_status = UserStatus.FREE
    session.commit()

    for user in expired:
        logger.info("Premium expired for %s (%s), downgraded to FREE", user.email, user.premium_until)
        safe_audit(
            audit, "PREMIUM_EXPIRED", user.id, user.id,
            f"Premium subscription expired. Previous expiry: {user.premium_until.isoformat()}",
            {"ip_address": "SYSTEM_CRON", "user_agent": "CronJob/PremiumExpiry"}
        )
    return [user.id for user in expired]
