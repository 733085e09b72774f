"""
Clock Protocol - Injectable source of the current time.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from billing.dates import ensure_utc, utc_now


class Clock(Protocol):
    """Anything that can tell the current UTC time."""

    def now(self) -> datetime:
        """Return the current time as an aware UTC datetime."""
        ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> datetime:
        return utc_now()


@dataclass
class FixedClock:
    """Clock frozen at a given instant; ``advance`` moves it forward."""

    current: datetime

    def __post_init__(self) -> None:
        self.current = ensure_utc(self.current)

    def now(self) -> datetime:
        return self.current

    def set(self, value: datetime) -> None:
        self.current = ensure_utc(value)

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta
