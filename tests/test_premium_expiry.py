from datetime import timedelta

from esign.common.clock import utcnow
from esign.documents.models.user import User, UserStatus
from esign.documents.services.cleanup import downgrade_expired_premium_users

from conftest import create_user


def test_expired_premium_users_are_downgraded(session, audit):
    create_user(session, 1, premium=True, premium_until=utcnow() - timedelta(days=1))
    create_user(session, 2, premium=True)
    create_user(session, 3)

    downgraded = downgrade_expired_premium_users(session, audit)

    assert downgraded == [1]
    assert session.get(User, 1).user_status == UserStatus.FREE
    # expiry date is kept as history
    assert session.get(User, 1).premium_until is not None
    assert session.get(User, 2).user_status == UserStatus.PREMIUM
    action, actor_id, subject_id, _, context = audit.entries[0]
    assert (action, actor_id, subject_id) == ("PREMIUM_EXPIRED", 1, 1)
    assert context["ip_address"] == "SYSTEM_CRON"


def test_nothing_to_downgrade(session):
    create_user(session, 1, premium=True)
    assert downgrade_expired_premium_users(session) == []


def test_job_is_scheduled_daily():
    from esign.documents.job import start_premium_expiry_job

    scheduler = start_premium_expiry_job()
    try:
        job = scheduler.get_job("premium_expiry")
        assert job is not None
        assert str(job.trigger.fields[job.trigger.FIELD_NAMES.index("hour")]) == "0"
        assert str(job.trigger.fields[job.trigger.FIELD_NAMES.index("minute")]) == "5"
    finally:
        scheduler.shutdown(wait=False)
