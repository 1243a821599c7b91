"""
Helper functions
"""

import random
from typing import Optional
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Naive UTC timestamp, matching how the database stores datetimes"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_timestamp_with_timezone(timestamp: Optional[datetime]) -> str:
    """Format a timestamp with an explicit UTC marker"""
    if not timestamp:
        return ""
    # The frontend expects a trailing 'Z' for UTC
    return timestamp.isoformat() + 'Z'


# Join code alphabet omits I/O and 0 to avoid confusion
CODE_LETTERS = "ABCDEFGHJKLMNPQRSTUVWXYZ"
CODE_DIGITS = "123456789"


def generate_room_code(rng: random.Random = random) -> str:
    """4 letters + 2 digits"""
    letters = "".join(rng.choice(CODE_LETTERS) for _ in range(4))
    digits = "".join(rng.choice(CODE_DIGITS) for _ in range(2))
    return letters + digits
