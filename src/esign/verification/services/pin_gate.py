"""
Rate-limited access code check.

State lives on the signature record itself (``retry_count`` and
``locked_until``), so the attempt budget is shared by everybody verifying
the same signature.
"""
import hmac
import logging
import math
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from esign.common.clock import utcnow
from esign.common.errors import IncorrectPin, LockedOut, TemporarilyLocked
from settings import settings

logger = logging.getLogger(__name__)


class PinGate:
    def __init__(self, session: Session, max_attempts: Optional[int] = None,
                 lockout_minutes: Optional[int] = None):
        self.session = session
        self.max_attempts = max_attempts or settings.pin_max_attempts
        self.lockout_minutes = lockout_minutes or settings.pin_lockout_minutes

    def is_locked(self, signature) -> bool:
        return signature.locked_until is not None and signature.locked_until > utcnow()

    def verify(self, signature, input_code: Optional[str]) -> None:
        """
        Raises TemporarilyLocked, LockedOut or IncorrectPin; returns quietly
        when the code matches. Counter changes are committed either way.
        """
        now = utcnow()
        if self.is_locked(signature):
            remaining = math.ceil((signature.locked_until - now).total_seconds() / 60)
            raise TemporarilyLocked(remaining)

        try:
            if signature.locked_until is not None:
                # lock window is over, start a fresh budget
                signature.retry_count = 0
                signature.locked_until = None

            stored = signature.access_code
            given = (input_code or "").strip()
            if not stored or not hmac.compare_digest(stored.encode("utf-8"), given.encode("utf-8")):
                signature.retry_count = (signature.retry_count or 0) + 1
                if signature.retry_count >= self.max_attempts:
                    signature.locked_until = now + timedelta(minutes=self.lockout_minutes)
                    logger.warning("Signature %s locked after %d wrong PINs", signature.id, signature.retry_count)
                    raise LockedOut(self.lockout_minutes)
                raise IncorrectPin(self.max_attempts - signature.retry_count)

            if signature.retry_count:
                signature.retry_count = 0
        finally:
            self.session.commit()
