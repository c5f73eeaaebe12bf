"""
Business Hours Model
Weekly opening hours used to generate bookable slots
"""
from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Optional
from datetime import date, datetime
import pytz


DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def parse_hhmm(value: str) -> int:
    """Convert an "HH:MM" string to minutes past midnight."""
    hour, minute = map(int, value.split(":"))
    if not (0 <= hour <= 24 and 0 <= minute < 60) or (hour == 24 and minute):
        raise ValueError(f"Invalid time of day: {value}")
    return hour * 60 + minute


def format_hhmm(minutes: int) -> str:
    """Convert minutes past midnight to a zero-padded "HH:MM" string."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


class DayWindow(BaseModel):
    """Opening window for a single weekday"""
    start: str = Field(..., description="Opening time (HH:MM)")
    end: str = Field(..., description="Closing time (HH:MM)")

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, v: str) -> str:
        parse_hhmm(v)
        return v

    @property
    def start_minutes(self) -> int:
        return parse_hhmm(self.start)

    @property
    def end_minutes(self) -> int:
        return parse_hhmm(self.end)


def _default_hours() -> Dict[int, DayWindow]:
    weekdays = {day: DayWindow(start="09:00", end="18:00") for day in range(5)}
    weekdays[5] = DayWindow(start="10:00", end="14:00")
    return weekdays


class BusinessHours(BaseModel):
    """
    Weekly business-hours table.

    Days are keyed 0=Monday .. 6=Sunday; a missing day is closed.
    All appointment dates and times are wall-clock values in `timezone`.
    """

    timezone: str = Field(
        default="UTC",
        description="Timezone the business operates in (e.g., 'Asia/Kolkata')"
    )
    slot_minutes: int = Field(
        default=30,
        ge=5,
        le=240,
        description="Width of a bookable slot in minutes"
    )
    hours: Dict[int, DayWindow] = Field(default_factory=_default_hours)

    @field_validator("hours")
    @classmethod
    def validate_days(cls, v: Dict[int, DayWindow]) -> Dict[int, DayWindow]:
        for day in v:
            if day < 0 or day > 6:
                raise ValueError(f"Weekday must be 0-6, got {day}")
        return v

    def window_for(self, day: date) -> Optional[DayWindow]:
        """Opening window for a date, or None when closed."""
        return self.hours.get(day.weekday())

    def slots_for(self, day: date) -> List[str]:
        """
        All slot start times within the opening window of a date.

        A slot is included only if it starts before closing time.
        """
        window = self.window_for(day)
        if window is None:
            return []

        slots = []
        current = window.start_minutes
        while current < window.end_minutes:
            slots.append(format_hhmm(current))
            current += self.slot_minutes
        return slots

    def now(self) -> datetime:
        """Current wall-clock time in the business timezone (naive)."""
        try:
            tz = pytz.timezone(self.timezone)
        except pytz.exceptions.UnknownTimeZoneError:
            tz = pytz.UTC
        return datetime.now(tz).replace(tzinfo=None)
