"""Tests for in-app and OS notification dispatch."""

from __future__ import annotations

from datetime import UTC

import pytest
from fakes import FakeCapability, at

from kinwell.domain.models import AIInsight, Appointment, AppNotification, PermissionState
from kinwell.services.dispatcher import NotificationDispatcher
from kinwell.services.permission import PermissionGate


def _dispatcher(
    capability: FakeCapability | None, focused: bool = False
) -> NotificationDispatcher:
    return NotificationDispatcher(
        PermissionGate(capability), is_foreground=lambda: focused, display_tz=UTC
    )


def _note(notification_id: str) -> AppNotification:
    return AppNotification(id=notification_id, title="t", message="m", created_at=at(9, 0))


class TestInAppList:
    def test_dispatch_prepends_newest_first(self) -> None:
        dispatcher = _dispatcher(None)

        dispatcher.dispatch(_note("n1"))
        dispatcher.dispatch(_note("n2"))

        assert [n.id for n in dispatcher.notifications] == ["n2", "n1"]

    def test_notifications_property_is_a_snapshot(self) -> None:
        dispatcher = _dispatcher(None)
        dispatcher.dispatch(_note("n1"))

        dispatcher.notifications.clear()

        assert len(dispatcher.notifications) == 1

    def test_dispatcher_does_not_deduplicate(self) -> None:
        dispatcher = _dispatcher(None)

        dispatcher.dispatch(_note("n1"))
        dispatcher.dispatch(_note("n1"))

        assert len(dispatcher.notifications) == 2

    def test_dismiss_removes_by_id(self) -> None:
        dispatcher = _dispatcher(None)
        dispatcher.dispatch(_note("n1"))
        dispatcher.dispatch(_note("n2"))

        assert dispatcher.dismiss("n1") is True
        assert [n.id for n in dispatcher.notifications] == ["n2"]

    def test_dismiss_unknown_id_is_a_no_op(self) -> None:
        dispatcher = _dispatcher(None)
        dispatcher.dispatch(_note("n1"))

        assert dispatcher.dismiss("missing") is False
        assert len(dispatcher.notifications) == 1


class TestOsDelivery:
    def test_granted_and_unfocused_shows_on_os(self) -> None:
        capability = FakeCapability(state=PermissionState.GRANTED)
        dispatcher = _dispatcher(capability, focused=False)

        dispatcher.dispatch(AppNotification(id="n1", title="Title", message="Body"))

        assert capability.shown == [("Title", "Body")]

    def test_focused_app_gets_in_app_only(self) -> None:
        capability = FakeCapability(state=PermissionState.GRANTED)
        dispatcher = _dispatcher(capability, focused=True)

        dispatcher.dispatch(_note("n1"))

        assert capability.shown == []
        assert len(dispatcher.notifications) == 1

    @pytest.mark.parametrize("state", [PermissionState.UNREQUESTED, PermissionState.DENIED])
    def test_without_grant_nothing_reaches_the_os(self, state: PermissionState) -> None:
        capability = FakeCapability(state=state)
        dispatcher = _dispatcher(capability)

        dispatcher.dispatch(_note("n1"))

        assert capability.shown == []

    def test_os_failure_never_escapes(self) -> None:
        capability = FakeCapability(state=PermissionState.GRANTED, fail_show=True)
        dispatcher = _dispatcher(capability)

        dispatcher.dispatch(_note("n1"))

        assert [n.id for n in dispatcher.notifications] == ["n1"]

    def test_failing_focus_check_counts_as_unfocused(self) -> None:
        capability = FakeCapability(state=PermissionState.GRANTED)

        def broken_focus() -> bool:
            raise RuntimeError("no window")

        dispatcher = NotificationDispatcher(PermissionGate(capability), is_foreground=broken_focus)
        dispatcher.dispatch(_note("n1"))

        assert len(capability.shown) == 1


class TestMessageFormatting:
    def test_reminder_notification_reuses_appointment_id(self, dentist: Appointment) -> None:
        dispatcher = _dispatcher(None)

        notification = dispatcher.notify_reminder(dentist, "Emily Doe", at(9, 31))

        assert notification.id == "a1"
        assert notification.title == "Reminder: Dentist Check-up"
        assert notification.message == "Emily Doe has an appointment at 10:00."
        assert notification.created_at == at(9, 31)

    def test_reminder_for_unknown_member_says_someone(self, dentist: Appointment) -> None:
        notification = _dispatcher(None).notify_reminder(dentist, None, at(9, 31))
        assert notification.message.startswith("Someone has an appointment")

    def test_insight_notification(self) -> None:
        insight = AIInsight(
            id="insight_1", member_id="1", title="New Health Observation", description="Trend."
        )

        notification = _dispatcher(None).notify_insight(insight, "John Doe", at(9, 0))

        assert notification.id == "insight_1"
        assert notification.title == "New Insight for John Doe"
        assert notification.message == "Trend."
