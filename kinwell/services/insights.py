"""
Insight bookkeeping and the per-tick stochastic insight sampler.

The sampler is best-effort: it proposes a generic observation for a random
family member at a low rate, and never proposes the same (member, title) pair
twice in a session. Real analysis of health data lives in ai_insights and is
only run on user request.
"""

import random
import uuid
from collections.abc import Iterable, Iterator, Sequence
from datetime import UTC, datetime

import structlog

from kinwell.domain.models import AIInsight, FamilyMember, InsightCategory

logger = structlog.get_logger(__name__)

DEFAULT_INSIGHT_TITLE = "New Health Observation"


class InsightBook:
    """Session-wide insight list, newest first, unique per (member_id, title)."""

    def __init__(self, insights: Iterable[AIInsight] = ()) -> None:
        self._insights: list[AIInsight] = []
        self._keys: set[tuple[str, str]] = set()
        # Seed in display order: the first given insight stays on top.
        for insight in reversed(list(insights)):
            self.add(insight)

    def __iter__(self) -> Iterator[AIInsight]:
        return iter(list(self._insights))

    def __len__(self) -> int:
        return len(self._insights)

    def contains(self, member_id: str, title: str) -> bool:
        return (member_id, title) in self._keys

    def add(self, insight: AIInsight) -> bool:
        """Prepend an insight. Returns False and keeps the book unchanged on a duplicate."""
        if insight.dedup_key in self._keys:
            return False
        self._keys.add(insight.dedup_key)
        self._insights.insert(0, insight)
        return True

    def for_member(self, member_id: str) -> list[AIInsight]:
        return [i for i in self._insights if i.member_id == member_id]


class InsightSampler:
    """
    Proposes at most one generic insight per call.

    The random source is injected so tests can force or suppress sampling.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        probability: float = 0.05,
        title: str = DEFAULT_INSIGHT_TITLE,
    ) -> None:
        if not 0.0 <= probability <= 1.0:
            raise ValueError("probability must be between 0 and 1")
        self.rng = rng or random.Random()
        self.probability = probability
        self.title = title
        self.logger = logger.bind(component="insight_sampler")

    def sample(
        self,
        members: Sequence[FamilyMember],
        book: InsightBook,
        now: datetime | None = None,
    ) -> AIInsight | None:
        """Roll once; on success record and return a new insight, otherwise None."""
        if not members:
            return None

        try:
            if self.rng.random() >= self.probability:
                return None
            member = self.rng.choice(members)
        except Exception as e:
            self.logger.debug("insight_sampling_skipped", error=str(e))
            return None

        if book.contains(member.id, self.title):
            self.logger.debug("insight_rejected_duplicate", member_id=member.id, title=self.title)
            return None

        insight = AIInsight(
            id=f"insight_{uuid.uuid4().hex}",
            member_id=member.id,
            title=self.title,
            description=f"A new trend has been observed in {member.name}'s recent health data.",
            category=InsightCategory.OBSERVATION,
            generated_at=now or datetime.now(UTC),
        )
        book.add(insight)
        self.logger.info("insight_sampled", member_id=member.id, insight_id=insight.id)
        return insight
