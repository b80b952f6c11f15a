# backend/tests/helpers.py

from datetime import date, timedelta

ADMIN_ID = "admin-1"


def next_weekday(start: date, weekday: int) -> date:
    """First date on/after `start` falling on `weekday` (0 = Monday)."""
    return start + timedelta(days=(weekday - start.weekday()) % 7)


def headers(user_id: str) -> dict:
    return {"X-User-Id": user_id}
