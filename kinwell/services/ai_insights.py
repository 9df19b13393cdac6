"""
On-demand AI generation using Pydantic AI.

Three agents, all invoked only on explicit user request (never by the ticker):
- HealthSummaryAgent: plain-language summary of a member's records and
  prescriptions, always closed by a fixed disclaimer.
- InsightGenerationAgent: structured trend observations over a member's
  health records, validated with Pydantic.
- PrescriptionExtractionAgent: reads medication name, dosage and frequency
  from a photo of a prescription.

Without an API key no model is called. Failures never propagate to the caller:
the summary falls back to a fixed message, insight generation to an empty list
and prescription extraction to None.
"""

import asyncio
import textwrap
from collections.abc import Sequence
from typing import Any, cast

import structlog
from pydantic import BaseModel, Field
from pydantic_ai import Agent, BinaryContent
from pydantic_ai.models import Model
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.providers.google import GoogleProvider

from kinwell.domain.models import FamilyMember, HealthRecord, InsightCategory, Prescription

logger = structlog.get_logger(__name__)

DISCLAIMER = (
    "Disclaimer: This is an AI-generated summary and not medical advice. Please consult "
    "with a healthcare professional for any medical concerns or decisions."
)
SUMMARY_UNAVAILABLE = (
    "The AI service is currently unavailable. This could be due to a missing or invalid "
    "API key. Please check your setup and try again later."
)
API_KEY_MISSING = "API Key is not configured. Please check the application setup."
MIN_RECORDS_FOR_INSIGHTS = 3
MAX_INSIGHTS_PER_RUN = 2

# Provider prefixes served by the Gemini API key.
GOOGLE_PROVIDERS = frozenset({"google", "google-gla"})


class InsightDraft(BaseModel):
    """Model output for one insight, before it is attached to a member."""

    title: str = Field(min_length=1, max_length=120)
    description: str = Field(min_length=1)
    category: InsightCategory


class PrescriptionDraft(BaseModel):
    """Fields read off a prescription image. Unreadable fields stay empty."""

    name: str = Field(default="", description="The name of the medication.")
    dosage: str = Field(default="", description="The dosage, e.g. '10mg' or '1 tablet'.")
    frequency: str = Field(
        default="", description="How often to take the medication, e.g. 'Once daily'."
    )


class AITextConfig(BaseModel):
    """Configuration for on-demand generation."""

    model_name: str = "google:gemini-2.5-flash"
    temperature: float = Field(default=0.2, ge=0.0, le=1.0)
    timeout_seconds: float = Field(default=30.0, gt=0.0)
    api_key: str | None = None

    @property
    def configured(self) -> bool:
        return self.api_key is not None


def build_model(config: AITextConfig) -> Model | str:
    """
    Resolve the configured model name.

    Gemini models get a provider carrying the configured key. Other names are
    left to pydantic-ai, which reads provider keys from the environment.
    """
    provider, _, name = config.model_name.partition(":")
    if provider in GOOGLE_PROVIDERS and config.api_key:
        return GoogleModel(name, provider=GoogleProvider(api_key=config.api_key))
    return config.model_name


def _format_record(record: HealthRecord) -> str:
    return (
        f"On {record.recorded_at.date().isoformat()}, "
        f"{record.type.value} was {record.display_value()}."
    )


class HealthSummaryAgent:
    """Summarizes a member's health data for a non-medical audience."""

    def __init__(self, config: AITextConfig) -> None:
        self.config = config
        self.logger = logger.bind(component="health_summary_agent")

        self.agent = Agent(
            model=build_model(self.config),
            output_type=str,
            system_prompt=self._build_system_prompt(),
            model_settings={"temperature": self.config.temperature},
            defer_model_check=True,
        )

    def _build_system_prompt(self) -> str:
        return """You are a helpful AI assistant designed to summarize health data in a simple,
easy-to-understand way for a non-medical audience.

DO NOT PROVIDE MEDICAL ADVICE. Your goal is to summarize the provided data and highlight
trends in a neutral, factual tone. Always include a disclaimer to consult a doctor for any
health concerns."""

    def build_prompt(
        self,
        member: FamilyMember,
        records: Sequence[HealthRecord],
        prescriptions: Sequence[Prescription],
    ) -> str:
        newest_first = sorted(records, key=lambda r: r.recorded_at, reverse=True)
        records_text = (
            "\n".join(f"- {_format_record(r)}" for r in newest_first)
            if newest_first
            else "No health records available."
        )
        prescriptions_text = (
            "\n".join(f"- {p.name} ({p.dosage}, {p.frequency})." for p in prescriptions)
            if prescriptions
            else "No active prescriptions listed."
        )

        return f"""Here is the data for a family member:
Name: {member.name}
Age: {member.age}
Gender: {member.gender}

Health Records (most recent first):
{records_text}

Active Prescriptions:
{prescriptions_text}

Based on this information, please provide a brief summary in clear, simple language.
Structure your response with these sections:
1. **Health Records Overview:** Briefly summarize the available records.
2. **Prescription Overview:** Briefly list the prescriptions.

Keep the summary concise and easy to read.

Finally, end your entire response with the following mandatory disclaimer, exactly as written:
"{DISCLAIMER}"
"""

    async def summarize(
        self,
        member: FamilyMember,
        records: Sequence[HealthRecord],
        prescriptions: Sequence[Prescription],
    ) -> str:
        if not self.config.configured:
            self.logger.warning("health_summary_unconfigured", member_id=member.id)
            return API_KEY_MISSING

        try:
            result = await asyncio.wait_for(
                self.agent.run(self.build_prompt(member, records, prescriptions)),
                timeout=self.config.timeout_seconds,
            )
            summary = cast(str, cast(Any, result).output).strip()
        except TimeoutError:
            self.logger.error("health_summary_timeout", member_id=member.id)
            return SUMMARY_UNAVAILABLE
        except Exception as e:
            self.logger.error("health_summary_failed", member_id=member.id, error=str(e))
            return SUMMARY_UNAVAILABLE

        if DISCLAIMER not in summary:
            summary = f"{summary}\n\n{DISCLAIMER}"
        self.logger.info("health_summary_generated", member_id=member.id, chars=len(summary))
        return summary


class InsightGenerationAgent:
    """
    Finds up to two trends in a member's time-series health data.

    Design: structured output only, no free text; too little data means no call.
    """

    def __init__(self, config: AITextConfig) -> None:
        self.config = config
        self.logger = logger.bind(component="insight_generation_agent")

        self.agent = Agent(
            model=build_model(self.config),
            output_type=list[InsightDraft],
            system_prompt=self._build_system_prompt(),
            model_settings={"temperature": self.config.temperature},
            defer_model_check=True,
        )

    def _build_system_prompt(self) -> str:
        categories = ", ".join(c.value for c in InsightCategory)
        return f"""You are a health data analyst AI. Identify up to {MAX_INSIGHTS_PER_RUN}
significant trends, patterns, or anomalies in time-series health data.
Do not give medical advice. Focus on objective observations from the data.
Each insight has a short title, a one or two sentence description and one of these
categories: {categories}."""

    def build_prompt(self, member: FamilyMember, records: Sequence[HealthRecord]) -> str:
        chronological = sorted(records, key=lambda r: r.recorded_at)
        lines = [textwrap.fill(_format_record(r), width=100) for r in chronological]
        return f"""Analyze the following time-series health data for {member.name} ({member.age} y/o).

Data:
{chr(10).join(lines)}"""

    async def generate(
        self, member: FamilyMember, records: Sequence[HealthRecord]
    ) -> list[InsightDraft]:
        if not self.config.configured:
            self.logger.warning("insight_generation_unconfigured", member_id=member.id)
            return []

        if len(records) < MIN_RECORDS_FOR_INSIGHTS:
            self.logger.info(
                "insight_generation_skipped", member_id=member.id, records=len(records)
            )
            return []

        try:
            result = await asyncio.wait_for(
                self.agent.run(self.build_prompt(member, records)),
                timeout=self.config.timeout_seconds,
            )
            drafts = cast(list[InsightDraft], cast(Any, result).output)
        except TimeoutError:
            self.logger.error("insight_generation_timeout", member_id=member.id)
            return []
        except Exception as e:
            self.logger.error("insight_generation_failed", member_id=member.id, error=str(e))
            return []

        drafts = list(drafts)[:MAX_INSIGHTS_PER_RUN]
        self.logger.info("insights_generated", member_id=member.id, count=len(drafts))
        return drafts


class PrescriptionExtractionAgent:
    """Reads a prescription photo into a PrescriptionDraft for the user to confirm."""

    def __init__(self, config: AITextConfig) -> None:
        self.config = config
        self.logger = logger.bind(component="prescription_extraction_agent")

        self.agent = Agent(
            model=build_model(self.config),
            output_type=PrescriptionDraft,
            system_prompt=self._build_system_prompt(),
            model_settings={"temperature": self.config.temperature},
            defer_model_check=True,
        )

    def _build_system_prompt(self) -> str:
        return """You read photos of medical prescriptions. Extract the medication name, the
dosage (e.g. "10mg") and the frequency (e.g. "Once daily").
If any field is not clearly visible, return an empty string for that field."""

    async def extract(self, image: bytes, media_type: str) -> PrescriptionDraft | None:
        if not self.config.configured:
            self.logger.warning("prescription_extraction_unconfigured")
            return None
        if not image:
            self.logger.info("prescription_extraction_skipped", reason="empty_image")
            return None

        try:
            result = await asyncio.wait_for(
                self.agent.run(
                    [
                        "Analyze the following image of a prescription.",
                        BinaryContent(data=image, media_type=media_type),
                    ]
                ),
                timeout=self.config.timeout_seconds,
            )
            draft = cast(PrescriptionDraft, cast(Any, result).output)
        except TimeoutError:
            self.logger.error("prescription_extraction_timeout", media_type=media_type)
            return None
        except Exception as e:
            self.logger.error(
                "prescription_extraction_failed", media_type=media_type, error=str(e)
            )
            return None

        self.logger.info(
            "prescription_extracted",
            fields_found=sum(bool(v) for v in (draft.name, draft.dosage, draft.frequency)),
        )
        return draft
