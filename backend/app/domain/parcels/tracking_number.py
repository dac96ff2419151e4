"""
Tracking number generation.

Format: <PREFIX>-<base36 millisecond timestamp>-<6 random base36 chars>, upper-cased.
"""

import secrets
import string
import time
from typing import Optional

from backend.app.core.config import settings

BASE36_ALPHABET = string.digits + string.ascii_uppercase
SUFFIX_LENGTH = 6


def to_base36(value: int) -> str:
    """Encode a non-negative integer in upper-case base36."""
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_tracking_number(prefix: Optional[str] = None, now_ms: Optional[int] = None) -> str:
    """
    Generate a human-readable tracking number.

    Uniqueness is probabilistic only: two parcels created in the same
    millisecond with the same suffix would collide on the unique index.
    """
    prefix = prefix or settings.tracking_prefix
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix}-{to_base36(now_ms)}-{suffix}".upper()
