"""
Appointment reminder evaluation.

The evaluation itself is a pure function of (now, appointments, shown set) so it
can be exercised with synthetic timestamps, independent of any timer. A reminder
is due while ``now`` sits inside the firing window that opens at
``scheduled_at - reminder_offset_minutes``. Once the window has passed without
an evaluation the reminder is dropped; there is no catch-up pass.
"""

import math
from collections.abc import Iterable, Iterator
from datetime import UTC, datetime, timedelta

import structlog

from kinwell.domain.models import Appointment

logger = structlog.get_logger(__name__)

DEFAULT_FIRING_WINDOW = timedelta(minutes=5)


class ShownSet:
    """
    Appointment ids that already produced a reminder this session.

    Grows monotonically; ids are never removed.
    """

    def __init__(self) -> None:
        self._ids: set[str] = set()

    def __contains__(self, appointment_id: object) -> bool:
        return appointment_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def claim(self, appointment_id: str) -> bool:
        """Mark an id as shown. Returns False if it was already claimed."""
        if appointment_id in self._ids:
            return False
        self._ids.add(appointment_id)
        return True


def reminder_time(appointment: Appointment) -> datetime | None:
    """
    Moment the reminder window opens, or None when the appointment cannot
    produce a reminder (no offset, or an offset/timestamp that is unusable).
    """
    offset = appointment.reminder_offset_minutes
    if offset is None:
        return None
    if not math.isfinite(offset) or offset < 0:
        return None
    try:
        return appointment.scheduled_at - timedelta(minutes=offset)
    except OverflowError:
        return None


def evaluate_due_reminders(
    now: datetime,
    appointments: Iterable[Appointment],
    shown: ShownSet,
    window: timedelta = DEFAULT_FIRING_WINDOW,
) -> list[Appointment]:
    """
    Return the appointments whose reminder is due at ``now``, in collection order.

    Each returned appointment has already been claimed in ``shown`` before it is
    appended, so a duplicate entry later in the same pass is not returned twice.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)

    due: list[Appointment] = []

    for appointment in appointments:
        if appointment.reminder_offset_minutes is None or appointment.id in shown:
            continue

        opens_at = reminder_time(appointment)
        if opens_at is None:
            logger.debug(
                "appointment_skipped",
                appointment_id=appointment.id,
                reminder_offset_minutes=appointment.reminder_offset_minutes,
            )
            continue

        try:
            in_window = opens_at <= now < opens_at + window
        except OverflowError:
            logger.debug("appointment_skipped", appointment_id=appointment.id)
            continue

        if in_window and shown.claim(appointment.id):
            due.append(appointment)

    return due


class ReminderEvaluator:
    """Stateful wrapper binding the firing window and the session's ShownSet."""

    def __init__(
        self, window: timedelta = DEFAULT_FIRING_WINDOW, shown: ShownSet | None = None
    ) -> None:
        if window <= timedelta(0):
            raise ValueError("firing window must be positive")
        self.window = window
        self.shown = shown if shown is not None else ShownSet()
        self.logger = logger.bind(component="reminder_evaluator")

    def evaluate(self, now: datetime, appointments: Iterable[Appointment]) -> list[Appointment]:
        due = evaluate_due_reminders(now, appointments, self.shown, self.window)
        for appointment in due:
            self.logger.info(
                "reminder_due",
                appointment_id=appointment.id,
                member_id=appointment.member_id,
                scheduled_at=appointment.scheduled_at.isoformat(),
            )
        return due
