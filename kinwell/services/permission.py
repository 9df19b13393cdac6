"""Tracks OS notification permission and decides whether OS delivery is allowed."""

import structlog

from kinwell.domain.models import PermissionState
from kinwell.services.capabilities import NotificationCapability

logger = structlog.get_logger(__name__)


class PermissionGate:
    """
    Permission state machine: ``unrequested`` -> ``granted`` | ``denied``.

    The only transition the gate makes on its own is through ``request()``. The
    user can still change the permission outside the app, so ``refresh()``
    re-reads whatever the platform reports.
    """

    def __init__(self, capability: NotificationCapability | None) -> None:
        self.capability = capability
        self.state = PermissionState.UNREQUESTED
        self.logger = logger.bind(component="permission_gate")
        self.refresh()

    @property
    def available(self) -> bool:
        return self.capability is not None

    @property
    def can_show(self) -> bool:
        return self.available and self.state is PermissionState.GRANTED

    def refresh(self) -> PermissionState:
        """Re-read the platform permission. Keeps the current state if it cannot."""
        if self.capability is None:
            return self.state

        try:
            self.state = PermissionState(self.capability.query_permission())
        except Exception as e:
            self.logger.warning("permission_query_failed", error=str(e))
        return self.state

    async def request(self) -> PermissionState:
        """Prompt for permission once; later calls return the recorded outcome."""
        if self.capability is None:
            self.logger.info("permission_unavailable")
            return self.state

        if self.state is not PermissionState.UNREQUESTED:
            return self.state

        try:
            result = PermissionState(await self.capability.request_permission())
        except Exception as e:
            self.logger.error("permission_request_failed", error=str(e))
            return self.state

        if result is not PermissionState.UNREQUESTED:
            self.state = result
        self.logger.info("permission_requested", state=self.state.value)
        return self.state
