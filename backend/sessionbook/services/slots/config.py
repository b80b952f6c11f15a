# backend/sessionbook/services/slots/config.py
"""
Booking configuration for the slot grid and the open calendar.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from functools import lru_cache

from ...config import settings
from ..errors import InvalidInput

SLOT_LABEL_FORMAT = "%I:%M %p"  # "10:00 AM"


def parse_slot_label(label: str) -> time:
    """Convert a slot label ("1:00 PM") to a wall-clock time."""
    try:
        return datetime.strptime(label.strip(), SLOT_LABEL_FORMAT).time()
    except (AttributeError, ValueError):
        raise InvalidInput(f"Malformed slot label: {label!r}") from None


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for the single-calendar slot grid.

    Attributes:
        slots: Ordered slot labels offered every open day
        slot_minutes: Length of each slot
        open_weekdays: Bookable weekdays (0 = Monday .. 6 = Sunday)
        max_series_occurrences: Upper bound for a weekly series
    """
    slots: tuple[str, ...] = (
        "10:00 AM",
        "11:00 AM",
        "12:00 PM",
        "1:00 PM",
        "2:00 PM",
        "3:00 PM",
        "4:00 PM",
    )
    slot_minutes: int = 60
    open_weekdays: frozenset[int] = frozenset({0, 1, 2, 3, 4})
    max_series_occurrences: int = 12

    def __post_init__(self):
        """Validate configuration."""
        if not self.slots:
            raise ValueError("At least one slot label is required")
        if len(set(self.slots)) != len(self.slots):
            raise ValueError(f"Duplicate slot labels: {self.slots}")
        for label in self.slots:
            parse_slot_label(label)
        if self.slot_minutes <= 0:
            raise ValueError(f"slot_minutes must be positive, got {self.slot_minutes}")
        if not self.open_weekdays <= frozenset(range(7)):
            raise ValueError(f"open_weekdays must be within 0..6, got {sorted(self.open_weekdays)}")
        if self.max_series_occurrences < 1:
            raise ValueError("max_series_occurrences must be >= 1")

    def validate_slot(self, label: str) -> str:
        """Return the label if it belongs to the grid, else raise InvalidInput."""
        if label not in self.slots:
            raise InvalidInput(
                f"Unknown slot {label!r}",
                details={"allowed_slots": list(self.slots)},
            )
        return label

    def slot_index(self, label: str) -> int:
        return self.slots.index(self.validate_slot(label))

    def slot_start(self, target_date: date, label: str) -> datetime:
        """Wall-clock start of a slot on a given day."""
        return datetime.combine(target_date, parse_slot_label(self.validate_slot(label)))

    def slot_end(self, target_date: date, label: str) -> datetime:
        return self.slot_start(target_date, label) + timedelta(minutes=self.slot_minutes)

    def is_open_weekday(self, target_date: date) -> bool:
        return target_date.weekday() in self.open_weekdays


@lru_cache
def get_booking_config() -> BookingConfig:
    """
    Get booking configuration (singleton), built from settings.
    """
    return BookingConfig(
        slots=tuple(settings.booking_slots),
        slot_minutes=settings.slot_minutes,
        open_weekdays=frozenset(settings.open_weekdays),
        max_series_occurrences=settings.max_series_occurrences,
    )
