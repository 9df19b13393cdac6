"""
OS-level notification capability.

The engine only talks to the NotificationCapability protocol; platform code is
injected. Two adapters ship with the package:

- DesktopNotificationCapability: shells out to notify-send (Linux) or
  osascript (macOS), fire-and-forget.
- ConsoleNotificationCapability: renders notifications as rich panels, handy
  for demos and headless development.

detect_capability() returns None when the runtime has no notification tool;
the engine then keeps permission at ``unrequested`` and only delivers in-app.
"""

import shutil
import subprocess
import sys
from typing import Protocol

import structlog
from rich.console import Console
from rich.panel import Panel

from kinwell.domain.models import PermissionState

logger = structlog.get_logger(__name__)


class NotificationCapability(Protocol):
    """
    Protocol for the platform notification API.

    ``show`` is best-effort and must not raise back into the engine.
    """

    def query_permission(self) -> PermissionState: ...

    async def request_permission(self) -> PermissionState: ...

    def show(self, title: str, message: str) -> None: ...


class ConsoleNotificationCapability:
    """Prints notifications to the terminal. Grants permission on request."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        self._state = PermissionState.UNREQUESTED

    def query_permission(self) -> PermissionState:
        return self._state

    async def request_permission(self) -> PermissionState:
        self._state = PermissionState.GRANTED
        return self._state

    def show(self, title: str, message: str) -> None:
        self.console.print(Panel(message, title=f"🔔 {title}", expand=False))


def _applescript_quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


class DesktopNotificationCapability:
    """
    Native desktop notifications through the platform's command line tool.

    Neither tool has a permission prompt, so a request simply records a grant.
    """

    def __init__(self, command: str) -> None:
        self.command = command
        self._state = PermissionState.UNREQUESTED
        self._pending: list[subprocess.Popen[bytes]] = []
        self.logger = logger.bind(component="desktop_notifications", command=command)

    def query_permission(self) -> PermissionState:
        return self._state

    async def request_permission(self) -> PermissionState:
        self._state = PermissionState.GRANTED
        return self._state

    def _build_args(self, title: str, message: str) -> list[str]:
        if self.command.endswith("osascript"):
            script = (
                f"display notification {_applescript_quote(message)} "
                f"with title {_applescript_quote(title)}"
            )
            return [self.command, "-e", script]
        return [self.command, "--app-name=Kinwell", title, message]

    def show(self, title: str, message: str) -> None:
        self.reap()
        try:
            process = subprocess.Popen(
                self._build_args(title, message),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            self.logger.error("os_notification_failed", error=str(e), title=title)
            return
        self._pending.append(process)

    def reap(self) -> int:
        """Collect finished notifier processes. Returns how many are still running."""
        still_running: list[subprocess.Popen[bytes]] = []
        for process in self._pending:
            returncode = process.poll()
            if returncode is None:
                still_running.append(process)
            elif returncode != 0:
                self.logger.warning("os_notification_exit", returncode=returncode)
        self._pending = still_running
        return len(still_running)


def detect_capability() -> DesktopNotificationCapability | None:
    """Return a desktop adapter for this platform, or None if no tool is available."""
    candidate = "osascript" if sys.platform == "darwin" else "notify-send"
    path = shutil.which(candidate)
    if path is None:
        logger.info("permission_unavailable", tool=candidate)
        return None
    return DesktopNotificationCapability(path)
