# backend/tests/test_series.py

from datetime import timedelta

import pytest

from sessionbook.models.generated import (
    ApprovalState,
    Bookings,
    BookingStatus,
    LedgerKind,
    LedgerTransactions,
)
from sessionbook.services import blackouts, bookings, ledger, series
from sessionbook.services.booking_rules import BookingRules
from sessionbook.services.errors import (
    BlackoutConflict,
    BookingWindowViolation,
    Forbidden,
    InsufficientCredits,
    InvalidInput,
    NotApproved,
    SlotUnavailable,
)
from sessionbook.services.slots import BookingConfig


@pytest.fixture
def wednesday(today):
    return today + timedelta(days=2)


@pytest.fixture
def plan(db, today, config):
    def _plan(user_id, start, count, slot="1:00 PM", actor=None, **kwargs):
        return series.create_series(db, actor, user_id, start, slot, count, today=today, config=config, **kwargs)
    return _plan


def _state(db, user_id):
    user = ledger.load_user(db, user_id)
    return user.remaining_credits, user.consumed_credits, db.query(Bookings).filter(Bookings.user_id == user_id).count()


def test_series_books_every_week(db, make_user, plan, wednesday, notifier):
    make_user("u1", granted=6)

    created = plan("u1", wednesday, 4)

    assert [b.date for b in created] == [(wednesday + timedelta(weeks=i)).isoformat() for i in range(4)]
    assert {b.recurring_group_id for b in created} == {created[0].recurring_group_id}
    assert [b.series_index for b in created] == [0, 1, 2, 3]
    assert {b.series_length for b in created} == {4}
    assert _state(db, "u1") == (2, 4, 4)

    debit = db.query(LedgerTransactions).filter(LedgerTransactions.kind == LedgerKind.DEBIT.value).one()
    assert (debit.amount, debit.recurring_group_id) == (-4, created[0].recurring_group_id)
    assert notifier.types == ["series_created"]


def test_single_occurrence_series(db, make_user, plan, wednesday):
    make_user("u1", granted=1)
    created = plan("u1", wednesday, 1)
    assert len(created) == 1


def test_blackout_on_third_occurrence_aborts_everything(db, make_user, plan, wednesday, notifier):
    make_user("u1", granted=6)
    third = wednesday + timedelta(weeks=2)
    blackouts.create_blackout(db, third, third, reason="Away")

    with pytest.raises(BlackoutConflict) as exc_info:
        plan("u1", wednesday, 4)

    assert exc_info.value.occurrence_index == 2
    assert exc_info.value.details["date"] == third.isoformat()
    assert _state(db, "u1") == (6, 0, 0)
    assert notifier.events == []


def test_existing_booking_on_later_occurrence(db, make_user, plan, wednesday, today, config):
    make_user("u1", granted=6)
    make_user("u2", granted=1)
    bookings.create_booking(db, None, "u2", wednesday + timedelta(weeks=1), "1:00 PM", today=today, config=config)

    with pytest.raises(SlotUnavailable) as exc_info:
        plan("u1", wednesday, 3)

    assert exc_info.value.details["occurrence_index"] == 1
    assert _state(db, "u1") == (6, 0, 0)


def test_window_rule_per_occurrence(db, make_user, plan, wednesday, now):
    make_user("u1", granted=6)

    with pytest.raises(BookingWindowViolation) as exc_info:
        plan("u1", wednesday, 3, rules=BookingRules(time_limit_hours=24 * 10), now=now)

    assert exc_info.value.occurrence_index == 2
    assert _state(db, "u1") == (6, 0, 0)


def test_race_on_occurrence_rolls_back_series(db, make_user, plan, wednesday, today, config, monkeypatch):
    make_user("u1", granted=6)
    make_user("u2", granted=1)
    bookings.create_booking(db, None, "u2", wednesday + timedelta(weeks=2), "1:00 PM", today=today, config=config)

    monkeypatch.setattr(series, "check_slot_free", lambda *args, **kwargs: None)
    with pytest.raises(SlotUnavailable) as exc_info:
        plan("u1", wednesday, 4)

    assert exc_info.value.occurrence_index == 2
    assert _state(db, "u1") == (6, 0, 0)


def test_insufficient_credit_changes_nothing(db, make_user, plan, wednesday):
    make_user("u1", granted=3)

    with pytest.raises(InsufficientCredits):
        plan("u1", wednesday, 4)

    assert _state(db, "u1") == (3, 0, 0)


@pytest.mark.parametrize("count", [0, -1, 13, "4", True])
def test_occurrence_count_bounds(db, make_user, plan, wednesday, count):
    make_user("u1", granted=20)
    with pytest.raises(InvalidInput):
        plan("u1", wednesday, count)


def test_configured_series_limit(db, make_user, today, wednesday):
    make_user("u1", granted=20)
    config = BookingConfig(max_series_occurrences=2)
    with pytest.raises(InvalidInput):
        series.create_series(db, None, "u1", wednesday, "1:00 PM", 3, today=today, config=config)


def test_series_requires_approval_and_ownership(db, make_user, plan, wednesday):
    make_user("u1", state=ApprovalState.PENDING, granted=4)
    intruder = make_user("u2", granted=4)

    with pytest.raises(NotApproved):
        plan("u1", wednesday, 2)
    with pytest.raises(Forbidden):
        plan("u1", wednesday, 2, actor=intruder)


def test_cancel_series_refunds_future_occurrences(db, make_user, plan, wednesday, today, notifier):
    make_user("u1", granted=4)
    created = plan("u1", wednesday, 4)
    group_id = created[0].recurring_group_id
    bookings.cancel_booking(db, None, created[1].id)

    cancelled = series.cancel_series(db, None, group_id, today=today)

    assert len(cancelled) == 3
    assert _state(db, "u1")[:2] == (4, 0)
    assert all(b.status == BookingStatus.CANCELLED.value for b in bookings.list_series(db, group_id))
    assert series.cancel_series(db, None, group_id, today=today) == []
    assert notifier.types.count("booking_cancelled") == 4


def test_cancel_series_skips_past_occurrences(db, make_user, plan, wednesday):
    make_user("u1", granted=4)
    created = plan("u1", wednesday, 3)

    later = wednesday + timedelta(weeks=1)
    cancelled = series.cancel_series(db, None, created[0].recurring_group_id, today=later)

    assert [b.series_index for b in cancelled] == [1, 2]
    assert db.get(Bookings, created[0].id).status == BookingStatus.CONFIRMED.value


def test_cancel_series_ownership(db, make_user, plan, wednesday):
    make_user("u1", granted=4)
    intruder = make_user("u2")
    created = plan("u1", wednesday, 2)

    with pytest.raises(Forbidden):
        series.cancel_series(db, intruder, created[0].recurring_group_id)


def test_cancel_series_honours_cancellation_notice_for_owner(db, make_user, plan, wednesday, today, now, config, notifier):
    owner = make_user("u1", granted=3)
    created = plan("u1", wednesday, 3)
    rules = BookingRules(cancel_time_limit_hours=72)  # first occurrence is 53h away

    with pytest.raises(BookingWindowViolation) as exc_info:
        series.cancel_series(
            db, owner, created[0].recurring_group_id,
            rules=rules, config=config, today=today, now=now,
        )

    assert exc_info.value.occurrence_index == 0
    assert exc_info.value.details["booking_id"] == created[0].id
    assert all(b.status == BookingStatus.CONFIRMED.value for b in bookings.list_series(db, created[0].recurring_group_id))
    assert _state(db, "u1") == (0, 3, 3)
    assert notifier.types == ["series_created"]


def test_admin_cancels_series_inside_notice_window(db, make_user, admin, plan, wednesday, today, now, config):
    make_user("u1", granted=3)
    created = plan("u1", wednesday, 3)

    cancelled = series.cancel_series(
        db, admin, created[0].recurring_group_id,
        rules=BookingRules(cancel_time_limit_hours=72), config=config, today=today, now=now,
    )

    assert [b.series_index for b in cancelled] == [0, 1, 2]
    assert _state(db, "u1")[:2] == (3, 0)
