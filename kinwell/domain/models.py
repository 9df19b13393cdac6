"""
Domain models for family health records and the notifications derived from them.

These models represent the core business concepts and are framework-agnostic.
Records read from the data store are frozen; the engine never edits them.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utc_now() -> datetime:
    return datetime.now(UTC)


class HealthRecordType(str, Enum):
    """Kinds of health measurements tracked per family member."""

    BLOOD_PRESSURE = "Blood Pressure"
    BLOOD_SUGAR = "Blood Sugar"
    CHOLESTEROL = "Cholesterol"
    BMI = "BMI"
    HEART_RATE = "Heart Rate"
    BLOOD_OXYGEN = "Blood Oxygen"


class InsightCategory(str, Enum):
    """Fixed set of insight categories shown on the dashboard."""

    POSITIVE_TREND = "Positive Trend"
    OBSERVATION = "Observation"
    NEEDS_ATTENTION = "Needs Attention"


class PermissionState(str, Enum):
    """OS notification permission as seen by the engine."""

    UNREQUESTED = "unrequested"
    GRANTED = "granted"
    DENIED = "denied"


class FamilyMember(BaseModel):
    """A person whose health data is managed by the household account."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    age: int = Field(default=0, ge=0)
    gender: Literal["Male", "Female", "Other"] = "Other"
    relation: str = ""


class Appointment(BaseModel):
    """Scheduled visit for a family member.

    ``reminder_offset_minutes`` is the lead time before ``scheduled_at`` at which
    a reminder becomes due. It is deliberately not range-checked here: the
    reminder evaluator skips unusable offsets instead of rejecting the record.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    member_id: str
    title: str
    scheduled_at: datetime
    reminder_offset_minutes: float | None = None
    doctor: str = ""
    location: str = ""
    notes: str | None = None

    @field_validator("scheduled_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class HealthRecord(BaseModel):
    """Single measurement; ``value2`` carries diastolic blood pressure."""

    model_config = ConfigDict(frozen=True)

    id: str
    member_id: str
    type: HealthRecordType
    value: float
    value2: float | None = None
    recorded_at: datetime = Field(default_factory=_utc_now)
    notes: str | None = None

    def display_value(self) -> str:
        value = f"{self.value:g}"
        if self.value2 is not None:
            value = f"{value}/{self.value2:g}"
        return value


class Prescription(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    member_id: str
    name: str
    dosage: str
    frequency: str
    start_date: datetime | None = None
    end_date: datetime | None = None


class AppNotification(BaseModel):
    """In-app notification. The id is reused from the appointment or insight."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    message: str
    created_at: datetime = Field(default_factory=_utc_now)


class AIInsight(BaseModel):
    """Generated observation about a member, unique per (member_id, title)."""

    model_config = ConfigDict(frozen=True)

    id: str
    member_id: str
    title: str = Field(min_length=1)
    description: str
    category: InsightCategory = InsightCategory.OBSERVATION
    generated_at: datetime = Field(default_factory=_utc_now)

    @property
    def dedup_key(self) -> tuple[str, str]:
        return (self.member_id, self.title)
