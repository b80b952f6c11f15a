# backend/sessionbook/services/slots/__init__.py
"""
Slot grid and availability.

config: fixed slot labels, open weekdays
availability: which slots already hold a confirmed booking
"""

from .config import BookingConfig, get_booking_config, parse_slot_label
from .availability import available_slots, booked_counts, booked_slots, is_slot_free

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "parse_slot_label",
    "available_slots",
    "booked_counts",
    "booked_slots",
    "is_slot_free",
]
