import secrets
import string
from datetime import datetime, timedelta
from typing import Optional
import logging

from config import settings
from utils.dates import utcnow

logger = logging.getLogger(__name__)


class OTPManager:
    """Generates and checks time-boxed delivery codes"""

    MIN_LENGTH = 4
    MAX_LENGTH = 6

    def __init__(self, length: int, expiry_minutes: int, max_attempts: int):
        if not self.MIN_LENGTH <= length <= self.MAX_LENGTH:
            raise ValueError(f"OTP length must be between {self.MIN_LENGTH} and {self.MAX_LENGTH}")
        self.length = length
        self.expiry_minutes = expiry_minutes
        self.max_attempts = max_attempts

    def generate_otp(self) -> str:
        """
        Generate a random numeric code

        Returns:
            String of `length` digits; the first digit is never 0 so the
            code survives clients that coerce it to a number
        """
        first = secrets.choice(string.digits[1:])
        rest = "".join(secrets.choice(string.digits) for _ in range(self.length - 1))
        return first + rest

    def get_expiry_time(self, now: Optional[datetime] = None) -> datetime:
        """
        Calculate OTP expiry time

        Args:
            now: issuance time (default: current UTC time)
        """
        return (now or utcnow()) + timedelta(minutes=self.expiry_minutes)

    @staticmethod
    def is_otp_expired(expires_at: datetime, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) > expires_at

    @staticmethod
    def codes_match(submitted: str, expected: str) -> bool:
        # Bytes, so non-ASCII input (e.g. full-width digits) is a mismatch, not a TypeError
        return secrets.compare_digest(str(submitted).strip().encode("utf-8"), str(expected).encode("utf-8"))

    def can_attempt(self, attempts: int) -> bool:
        return attempts < self.max_attempts

    def get_attempts_remaining(self, attempts: int) -> int:
        return max(0, self.max_attempts - attempts)


# Create singleton instance
otp_manager = OTPManager(
    length=settings.DELIVERY_OTP_LENGTH,
    expiry_minutes=settings.DELIVERY_OTP_TTL_MINUTES,
    max_attempts=settings.DELIVERY_OTP_MAX_ATTEMPTS,
)
