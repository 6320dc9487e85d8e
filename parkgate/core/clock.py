"""
ParkGate - Horloge

Horloge injectable : les composants datés (tokens, sessions) reçoivent un
callable retournant un datetime UTC aware. Les tests injectent une horloge
figée au lieu d'attendre.
"""

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Callable
from zoneinfo import ZoneInfo


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FrozenClock:
    """
    Horloge manuelle.

    Example:
        clock = FrozenClock(datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc))
        clock.advance(minutes=61)
    """

    def __init__(self, start: datetime):
        if start.tzinfo is None:
            raise ValueError("FrozenClock exige un datetime aware")
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> datetime:
        self.current = self.current + timedelta(**delta)
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value


def resolve_timezone(name: str) -> tzinfo:
    """
    Résout un nom de fuseau IANA.

    Raises:
        ZoneInfoNotFoundError: fuseau inconnu
    """
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)
