"""
Tests for reminder evaluation and the ShownSet.

The evaluation is a pure function, so every test drives it with synthetic
timestamps on 2024-01-01 rather than a real timer.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from fakes import at
from hypothesis import given
from hypothesis import strategies as st

from kinwell.domain.models import Appointment
from kinwell.services.reminders import (
    ReminderEvaluator,
    ShownSet,
    evaluate_due_reminders,
    reminder_time,
)


def _appointment(
    appointment_id: str, offset: float | None, scheduled_at: datetime | None = None
) -> Appointment:
    return Appointment(
        id=appointment_id,
        member_id="1",
        title=f"Visit {appointment_id}",
        scheduled_at=scheduled_at or at(10, 0),
        reminder_offset_minutes=offset,
    )


tick_times = st.datetimes(
    min_value=datetime(2024, 1, 1, 8, 0),
    max_value=datetime(2024, 1, 1, 11, 0),
    timezones=st.just(UTC),
)


class TestShownSet:
    def test_claim_is_check_and_set(self) -> None:
        shown = ShownSet()

        assert shown.claim("a1") is True
        assert shown.claim("a1") is False
        assert "a1" in shown
        assert len(shown) == 1

    def test_has_no_removal_path(self) -> None:
        shown = ShownSet()
        assert not hasattr(shown, "remove")
        assert not hasattr(shown, "discard")


class TestWindowBoundary:
    def test_tick_inside_window_fires_once(self, dentist: Appointment) -> None:
        shown = ShownSet()

        due = evaluate_due_reminders(at(9, 31), [dentist], shown)

        assert [a.id for a in due] == ["a1"]
        assert "a1" in shown

    def test_later_tick_after_window_fires_nothing(self, dentist: Appointment) -> None:
        shown = ShownSet()
        evaluate_due_reminders(at(9, 31), [dentist], shown)

        assert evaluate_due_reminders(at(9, 40), [dentist], shown) == []

    def test_window_start_is_inclusive(self, dentist: Appointment) -> None:
        assert evaluate_due_reminders(at(9, 30), [dentist], ShownSet()) == [dentist]

    def test_window_end_is_exclusive(self, dentist: Appointment) -> None:
        assert evaluate_due_reminders(at(9, 35), [dentist], ShownSet()) == []
        assert evaluate_due_reminders(at(9, 34, 59), [dentist], ShownSet()) == [dentist]

    def test_missed_window_is_permanent(self, dentist: Appointment) -> None:
        shown = ShownSet()

        for now in (at(9, 29), at(9, 36), at(9, 50), at(10, 0), at(12, 0)):
            assert evaluate_due_reminders(now, [dentist], shown) == []

        assert "a1" not in shown

    def test_custom_window_widens_firing_interval(self, dentist: Appointment) -> None:
        due = evaluate_due_reminders(at(9, 40), [dentist], ShownSet(), window=timedelta(minutes=15))
        assert due == [dentist]

    def test_naive_now_is_treated_as_utc(self, dentist: Appointment) -> None:
        due = evaluate_due_reminders(datetime(2024, 1, 1, 9, 31), [dentist], ShownSet())
        assert due == [dentist]


class TestSelection:
    def test_appointments_without_offset_are_never_evaluated(self) -> None:
        plain = _appointment("plain", None)
        shown = ShownSet()

        for minute in range(0, 60):
            assert evaluate_due_reminders(at(9, minute), [plain], shown) == []
        assert len(shown) == 0

    def test_zero_offset_fires_at_scheduled_time(self) -> None:
        appointment = _appointment("zero", 0)
        assert evaluate_due_reminders(at(10, 2), [appointment], ShownSet()) == [appointment]

    def test_due_appointments_keep_collection_order(self) -> None:
        later = _appointment("later", 30, at(10, 1))
        earlier = _appointment("earlier", 30, at(10, 0))
        unrelated = _appointment("unrelated", 30, at(15, 0))

        due = evaluate_due_reminders(at(9, 32), [later, unrelated, earlier], ShownSet())

        assert [a.id for a in due] == ["later", "earlier"]

    def test_duplicate_ids_in_one_pass_fire_once(self, dentist: Appointment) -> None:
        due = evaluate_due_reminders(at(9, 31), [dentist, dentist], ShownSet())
        assert due == [dentist]

    @pytest.mark.parametrize("offset", [float("nan"), float("inf"), float("-inf"), -10.0])
    def test_malformed_offsets_are_skipped(self, dentist: Appointment, offset: float) -> None:
        broken = _appointment("broken", offset)
        shown = ShownSet()

        due = evaluate_due_reminders(at(9, 31), [broken, dentist], shown)

        assert due == [dentist]
        assert "broken" not in shown

    def test_offset_overflowing_datetime_is_skipped(self) -> None:
        huge = _appointment("huge", 1e15)
        assert reminder_time(huge) is None
        assert evaluate_due_reminders(at(9, 31), [huge], ShownSet()) == []


class TestProperties:
    @given(ticks=st.lists(tick_times, max_size=40))
    def test_at_most_once_across_arbitrary_ticks(self, ticks: list[datetime]) -> None:
        """Property: however ticks are ordered, one appointment fires at most once."""
        appointment = _appointment("a1", 30)
        shown = ShownSet()

        fired = sum(len(evaluate_due_reminders(now, [appointment], shown)) for now in ticks)

        assert fired <= 1
        in_window = any(at(9, 30) <= now < at(9, 35) for now in ticks)
        assert fired == (1 if in_window else 0)

    @given(ticks=st.lists(tick_times, max_size=40))
    def test_no_reminder_without_offset(self, ticks: list[datetime]) -> None:
        appointment = _appointment("a1", None)
        shown = ShownSet()

        assert all(evaluate_due_reminders(now, [appointment], shown) == [] for now in ticks)


class TestReminderEvaluator:
    def test_evaluate_shares_shown_set_between_calls(self, dentist: Appointment) -> None:
        evaluator = ReminderEvaluator()

        assert evaluator.evaluate(at(9, 31), [dentist]) == [dentist]
        assert evaluator.evaluate(at(9, 33), [dentist]) == []
        assert "a1" in evaluator.shown

    def test_rejects_non_positive_window(self) -> None:
        with pytest.raises(ValueError, match="window"):
            ReminderEvaluator(window=timedelta(0))
