from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from .errors import ValidationError

_SECONDS_PER_HOUR = Decimal(3600)


@dataclass(frozen=True)
class Interval:
    """Half-open time interval ``[start, end)``.

    A reservation ending at 14:00 and one starting at 14:00 do not overlap.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValidationError("end must be later than start")

    def overlaps(self, other: Interval) -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    @property
    def duration_hours(self) -> Decimal:
        delta = self.end - self.start
        seconds = Decimal(delta.days * 86400 + delta.seconds) + Decimal(delta.microseconds) / Decimal(1_000_000)
        return seconds / _SECONDS_PER_HOUR
