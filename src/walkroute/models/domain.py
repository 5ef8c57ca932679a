"""Domain models for pets, appointments and times of day."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from functools import total_ordering
from typing import Optional

MINUTES_PER_DAY = 24 * 60


@total_ordering
@dataclass(frozen=True, slots=True)
class TimeOfDay:
    """A clock time on the planning reference day, stored as minutes since midnight.

    Minutes may be fractional (simulated arrival times) and may run past
    midnight when a plan overflows the day.
    """

    minutes: float

    @classmethod
    def of(cls, hour: int, minute: int = 0, second: int = 0) -> "TimeOfDay":
        return cls(hour * 60 + minute + second / 60.0)

    @classmethod
    def now(cls) -> "TimeOfDay":
        current = datetime.now()
        return cls.of(current.hour, current.minute, current.second)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, TimeOfDay):
            return NotImplemented
        return self.minutes < other.minutes

    def plus(self, minutes: float) -> "TimeOfDay":
        return TimeOfDay(self.minutes + minutes)

    def minutes_until(self, other: "TimeOfDay") -> float:
        return other.minutes - self.minutes

    def format(self) -> str:
        total = int(math.floor(self.minutes + 1e-9)) % MINUTES_PER_DAY
        return f"{total // 60:02d}:{total % 60:02d}"

    def __str__(self) -> str:
        return self.format()


@dataclass(slots=True)
class Pet:
    """Pet location and display details attached to an appointment."""

    pet_id: str
    name: str
    address: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]

    @property
    def geocoded(self) -> bool:
        if self.latitude is None or self.longitude is None:
            return False
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            return False
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0


@dataclass(slots=True)
class Appointment:
    """A single dog-walking booking for the planned day."""

    appointment_id: str
    pet: Pet
    start_time: Optional[TimeOfDay]
    end_time: Optional[TimeOfDay]
    duration_minutes: int
    walk_type: Optional[str]
    manual_group_id: Optional[str] = None

    @property
    def normalized_walk_type(self) -> str:
        return (self.walk_type or "").strip().lower()

    @property
    def has_window(self) -> bool:
        return self.start_time is not None and self.end_time is not None
