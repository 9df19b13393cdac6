"""
Core services for the application.

This package contains the notification engine and its parts: reminder
evaluation, insight sampling, dispatch, permission handling, the ticker, and
the on-demand AI text generation agents.
"""

from .capabilities import (
    ConsoleNotificationCapability,
    DesktopNotificationCapability,
    NotificationCapability,
    detect_capability,
)
from .data_store import DataStore, InMemoryDataStore
from .dispatcher import NotificationDispatcher
from .engine import NotificationEngine, TickResult
from .insights import InsightBook, InsightSampler
from .permission import PermissionGate
from .reminders import ReminderEvaluator, ShownSet, evaluate_due_reminders
from .ticker import Ticker

__all__ = [
    "ConsoleNotificationCapability",
    "DataStore",
    "DesktopNotificationCapability",
    "InMemoryDataStore",
    "InsightBook",
    "InsightSampler",
    "NotificationCapability",
    "NotificationDispatcher",
    "NotificationEngine",
    "PermissionGate",
    "ReminderEvaluator",
    "ShownSet",
    "TickResult",
    "Ticker",
    "detect_capability",
    "evaluate_due_reminders",
]
