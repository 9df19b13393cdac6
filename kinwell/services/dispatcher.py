"""
Turns due reminders and new insights into notifications.

Every notification lands in the in-app list (newest first). It is additionally
pushed to the OS when permission is granted and the app is not in the
foreground. Deduplication happens upstream (ShownSet, InsightBook); the
dispatcher delivers whatever it is given.
"""

from collections.abc import Callable
from datetime import UTC, datetime, tzinfo

import structlog

from kinwell.domain.models import AIInsight, AppNotification, Appointment
from kinwell.services.permission import PermissionGate

logger = structlog.get_logger(__name__)

UNKNOWN_MEMBER_NAME = "Someone"


def _never_focused() -> bool:
    return False


class NotificationDispatcher:
    """Owns the in-app notification list and fans out to the OS capability."""

    def __init__(
        self,
        gate: PermissionGate,
        is_foreground: Callable[[], bool] | None = None,
        display_tz: tzinfo | None = None,
    ) -> None:
        self.gate = gate
        self.is_foreground = is_foreground or _never_focused
        # None renders appointment times in the machine's local zone.
        self.display_tz = display_tz
        self._notifications: list[AppNotification] = []
        self.logger = logger.bind(component="notification_dispatcher")

    @property
    def notifications(self) -> list[AppNotification]:
        """Snapshot of the in-app list, newest first."""
        return list(self._notifications)

    def dispatch(self, notification: AppNotification) -> AppNotification:
        self._notifications.insert(0, notification)

        pushed = False
        if self.gate.can_show and not self._app_focused():
            pushed = self._show_on_os(notification)

        self.logger.info(
            "notification_dispatched",
            notification_id=notification.id,
            title=notification.title,
            os_delivered=pushed,
        )
        return notification

    def notify_reminder(
        self, appointment: Appointment, member_name: str | None, now: datetime | None = None
    ) -> AppNotification:
        at = appointment.scheduled_at.astimezone(self.display_tz).strftime("%H:%M")
        return self.dispatch(
            AppNotification(
                id=appointment.id,
                title=f"Reminder: {appointment.title}",
                message=f"{member_name or UNKNOWN_MEMBER_NAME} has an appointment at {at}.",
                created_at=now or datetime.now(UTC),
            )
        )

    def notify_insight(
        self, insight: AIInsight, member_name: str | None, now: datetime | None = None
    ) -> AppNotification:
        return self.dispatch(
            AppNotification(
                id=insight.id,
                title=f"New Insight for {member_name or UNKNOWN_MEMBER_NAME}",
                message=insight.description,
                created_at=now or datetime.now(UTC),
            )
        )

    def dismiss(self, notification_id: str) -> bool:
        """Remove a notification from the in-app list. No-op if it is not there."""
        before = len(self._notifications)
        self._notifications = [n for n in self._notifications if n.id != notification_id]
        removed = len(self._notifications) != before
        if removed:
            self.logger.info("notification_dismissed", notification_id=notification_id)
        return removed

    def clear(self) -> None:
        self._notifications = []

    def _app_focused(self) -> bool:
        try:
            return bool(self.is_foreground())
        except Exception as e:
            self.logger.warning("focus_check_failed", error=str(e))
            return False

    def _show_on_os(self, notification: AppNotification) -> bool:
        capability = self.gate.capability
        if capability is None:
            return False
        try:
            capability.show(notification.title, notification.message)
            return True
        except Exception as e:
            self.logger.error(
                "os_notification_failed", error=str(e), notification_id=notification.id
            )
            return False
