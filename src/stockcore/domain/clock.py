"""Time source shared by the domain services.

Services accept any zero-argument callable returning an aware datetime so
tests can drive TTLs and expiry horizons deterministically.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now(timezone.utc)
