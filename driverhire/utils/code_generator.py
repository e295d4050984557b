import secrets
from datetime import date

from driverhire.config import settings


def generate_booking_code(today: date | None = None, prefix: str | None = None) -> str:
    """Generate a booking code: prefix + YY + MM + 4 random digits, e.g. ``SP25070413``."""
    today = today or date.today()
    prefix = prefix or settings.BOOKING_CODE_PREFIX
    return f"{prefix}{today:%y%m}{secrets.randbelow(10000):04d}"
