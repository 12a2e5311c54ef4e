from sqlalchemy.orm import Session
from esign.common.clock import utcnow
from esign.documents.models.user import User, UserStatus


class UserService:

    @staticmethod
    def is_user_premium(session: Session, user_id: int) -> bool:
        """
        True only for PREMIUM users whose subscription has not expired yet.
        Always read from the database; callers ask right before the mutation
        the quota guards.
        """
        user = session.get(User, user_id)
        if not user:
            return False
        if user.user_status != UserStatus.PREMIUM:
            return False
        if not user.premium_until:
            return False
        return utcnow() <= user.premium_until
