"""
Session-scoped reminder and insight notification engine.

One engine per session owns all mutable notification state: the ShownSet, the
in-app notification list, the insight book and the permission gate. Each tick:
1. Read a fresh snapshot of appointments and members from the data store
2. Evaluate due reminders and dispatch one notification per due appointment
3. Roll the insight sampler once and dispatch any new insight

Everything runs on the event loop thread; no locks are needed.
"""

import asyncio
import random
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Any

import structlog

from kinwell.config import AppConfig, get_config, get_model_config
from kinwell.domain.models import (
    AIInsight,
    Appointment,
    AppNotification,
    FamilyMember,
    PermissionState,
)
from kinwell.services.ai_insights import (
    AITextConfig,
    HealthSummaryAgent,
    InsightGenerationAgent,
    PrescriptionDraft,
    PrescriptionExtractionAgent,
)
from kinwell.services.capabilities import NotificationCapability
from kinwell.services.data_store import DataStore
from kinwell.services.dispatcher import NotificationDispatcher
from kinwell.services.insights import InsightBook, InsightSampler
from kinwell.services.permission import PermissionGate
from kinwell.services.reminders import ReminderEvaluator, ShownSet
from kinwell.services.ticker import Ticker

logger = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class TickResult:
    """What a single evaluation pass produced."""

    ticked_at: datetime
    reminders: list[Appointment] = field(default_factory=list)
    insight: AIInsight | None = None
    notifications: list[AppNotification] = field(default_factory=list)


class NotificationEngine:
    """
    Drives reminders and insights for one user session.

    Collaborators are injected so tests can run the engine deterministically:
    the data store, the OS capability (None when the platform has none), the
    random source, the clock and the foreground check.
    """

    def __init__(
        self,
        store: DataStore,
        capability: NotificationCapability | None = None,
        *,
        config: AppConfig | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
        is_foreground: Callable[[], bool] | None = None,
        display_tz: tzinfo | None = None,
        insights: Iterable[AIInsight] = (),
        summary_agent: HealthSummaryAgent | None = None,
        insight_agent: InsightGenerationAgent | None = None,
        prescription_agent: PrescriptionExtractionAgent | None = None,
    ) -> None:
        self.config = config or get_config()
        self.store = store
        self.clock = clock or _utc_now
        self.logger = logger.bind(component="notification_engine")

        reminder_config = self.config.reminders
        self.permission = PermissionGate(capability)
        self.evaluator = ReminderEvaluator(
            window=timedelta(minutes=reminder_config.firing_window_minutes)
        )
        self.insight_book = InsightBook(insights)
        self.sampler = InsightSampler(
            rng=rng,
            probability=reminder_config.insight_probability,
            title=reminder_config.insight_title,
        )
        self.dispatcher = NotificationDispatcher(
            self.permission, is_foreground=is_foreground, display_tz=display_tz
        )
        self.ticker = Ticker(self.run_tick, interval_seconds=reminder_config.tick_interval_seconds)

        self._init_ai_text(summary_agent, insight_agent, prescription_agent)

        self._ticks = 0
        self._reminders_sent = 0
        self._last_tick_at: datetime | None = None

    def _init_ai_text(
        self,
        summary_agent: HealthSummaryAgent | None,
        insight_agent: InsightGenerationAgent | None,
        prescription_agent: PrescriptionExtractionAgent | None,
    ) -> None:
        """Initialize the on-demand AI agents unless supplied."""
        self.summary_agent = summary_agent or HealthSummaryAgent(
            AITextConfig(**get_model_config("summary", self.config))
        )
        self.insight_agent = insight_agent or InsightGenerationAgent(
            AITextConfig(**get_model_config("insights", self.config))
        )
        self.prescription_agent = prescription_agent or PrescriptionExtractionAgent(
            AITextConfig(**get_model_config("prescription", self.config))
        )

    # UI-facing state

    @property
    def notifications(self) -> list[AppNotification]:
        return self.dispatcher.notifications

    @property
    def insights(self) -> list[AIInsight]:
        return list(self.insight_book)

    @property
    def permission_state(self) -> PermissionState:
        return self.permission.state

    def dismiss(self, notification_id: str) -> bool:
        return self.dispatcher.dismiss(notification_id)

    async def request_permission(self) -> PermissionState:
        return await self.permission.request()

    # Evaluation

    def run_tick(self, now: datetime | None = None) -> TickResult:
        """Run one evaluation pass against the latest data store snapshot."""
        now = now or self.clock()
        result = TickResult(ticked_at=now)

        self._ticks += 1
        self._last_tick_at = now
        self.permission.refresh()

        try:
            appointments = list(self.store.appointments())
            members = list(self.store.family_members())
        except Exception as e:
            self.logger.error("snapshot_failed", error=str(e))
            return result

        names = self._member_names(members)

        result.reminders = self.evaluator.evaluate(now, appointments)
        for appointment in result.reminders:
            result.notifications.append(
                self.dispatcher.notify_reminder(appointment, names.get(appointment.member_id), now)
            )
        self._reminders_sent += len(result.reminders)

        result.insight = self.sampler.sample(members, self.insight_book, now)
        if result.insight is not None:
            result.notifications.append(
                self.dispatcher.notify_insight(
                    result.insight, names.get(result.insight.member_id), now
                )
            )

        self.logger.info(
            "tick_completed",
            appointments=len(appointments),
            reminders=len(result.reminders),
            insight=result.insight is not None,
        )
        return result

    @staticmethod
    def _member_names(members: Iterable[FamilyMember]) -> dict[str, str]:
        return {m.id: m.name for m in members}

    def _find_member(self, member_id: str) -> FamilyMember | None:
        return next((m for m in self.store.family_members() if m.id == member_id), None)

    # On-demand AI features

    async def generate_insights(self, member_id: str) -> list[AIInsight]:
        """Ask the model for trend insights and keep the ones not seen before."""
        member = self._find_member(member_id)
        if member is None:
            self.logger.warning("insight_generation_unknown_member", member_id=member_id)
            return []

        drafts = await self.insight_agent.generate(member, self.store.health_records(member_id))

        added: list[AIInsight] = []
        now = self.clock()
        for index, draft in enumerate(drafts):
            insight = AIInsight(
                id=f"insight_{member_id}_{int(now.timestamp() * 1000)}_{index}",
                member_id=member_id,
                title=draft.title,
                description=draft.description,
                category=draft.category,
                generated_at=now,
            )
            if self.insight_book.add(insight):
                added.append(insight)
            else:
                self.logger.debug(
                    "insight_rejected_duplicate", member_id=member_id, title=draft.title
                )
        return added

    async def summarize_member(self, member_id: str) -> str | None:
        """Plain-language summary of a member's records, or None for an unknown member."""
        member = self._find_member(member_id)
        if member is None:
            return None
        return await self.summary_agent.summarize(
            member,
            self.store.health_records(member_id),
            self.store.prescriptions(member_id),
        )

    async def read_prescription(self, image: bytes, media_type: str) -> PrescriptionDraft | None:
        """Extract medication fields from a prescription photo for the user to review."""
        return await self.prescription_agent.extract(image, media_type)

    # Lifecycle

    def start(self) -> None:
        self.permission.refresh()
        self.ticker.start()

    async def stop(self) -> None:
        """
        Stop ticking and discard the session's notification state.

        The ShownSet, the in-app list and the insight book start empty again, so
        a later start() behaves like a new session. Idempotent.
        """
        await self.ticker.stop()
        self.evaluator.shown = ShownSet()
        self.dispatcher.clear()
        self.insight_book = InsightBook()
        self.logger.info("session_discarded")

    @asynccontextmanager
    async def running(self) -> AsyncIterator["NotificationEngine"]:
        """Ticks for the duration of the block, then stops deterministically."""
        self.start()
        try:
            yield self
        finally:
            await self.stop()

    def status(self) -> dict[str, Any]:
        return {
            "running": self.ticker.is_running,
            "last_tick_at": self._last_tick_at.isoformat() if self._last_tick_at else None,
            "ticks": self._ticks,
            "reminders_sent": self._reminders_sent,
            "notifications": len(self.dispatcher.notifications),
            "insights": len(self.insight_book),
            "permission": self.permission.state.value,
        }


# Example usage and demonstration
async def main() -> None:
    """Run the engine against an in-memory household with a reminder due now."""

    from rich.console import Console
    from rich.table import Table

    from kinwell.config import LoggingConfig, ReminderConfig
    from kinwell.logging_config import configure_logging
    from kinwell.services.capabilities import ConsoleNotificationCapability
    from kinwell.services.data_store import InMemoryDataStore

    console = Console()
    configure_logging(LoggingConfig(level="WARNING", format="console"))

    now = datetime.now(UTC)
    store = InMemoryDataStore(
        members=[
            FamilyMember(id="1", name="John Doe", age=45, gender="Male", relation="Father"),
            FamilyMember(id="4", name="Emily Doe", age=15, gender="Female", relation="Daughter"),
        ],
        appointments=[
            Appointment(
                id="a1",
                member_id="4",
                title="Dentist Check-up",
                scheduled_at=now + timedelta(minutes=29),
                reminder_offset_minutes=30,
                doctor="Dr. Smiles",
            ),
            Appointment(
                id="a2",
                member_id="1",
                title="Cardiologist Follow-up",
                scheduled_at=now + timedelta(days=21),
            ),
        ],
    )

    base = get_config()
    config = base.model_copy(
        update={"reminders": ReminderConfig(tick_interval_seconds=1.0, insight_probability=0.5)}
    )
    engine = NotificationEngine(
        store, ConsoleNotificationCapability(console), config=config, rng=random.Random(7)
    )
    await engine.request_permission()

    console.print("[bold]Running three ticks...[/bold]")
    async with engine.running():
        await asyncio.sleep(3.5)

        table = Table(title="In-app notifications")
        table.add_column("Id")
        table.add_column("Title")
        table.add_column("Message")
        for notification in engine.notifications:
            table.add_row(notification.id, notification.title, notification.message)
        console.print(table)
        console.print(engine.status())


if __name__ == "__main__":
    asyncio.run(main())
