"""Shared fixtures for the kinwell unit tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fakes import at

from kinwell.config import get_config
from kinwell.domain.models import Appointment, FamilyMember
from kinwell.services.data_store import InMemoryDataStore


@pytest.fixture(autouse=True)
def clear_config_cache() -> Iterator[None]:
    """Ensure get_config cache is cleared before and after each test."""
    get_config.cache_clear()
    yield
    get_config.cache_clear()


@pytest.fixture
def members() -> list[FamilyMember]:
    return [
        FamilyMember(id="1", name="John Doe", age=45, gender="Male", relation="Father"),
        FamilyMember(id="4", name="Emily Doe", age=15, gender="Female", relation="Daughter"),
    ]


@pytest.fixture
def dentist() -> Appointment:
    """Appointment at 10:00Z with a 30 minute reminder: window is [09:30, 09:35)."""
    return Appointment(
        id="a1",
        member_id="4",
        title="Dentist Check-up",
        scheduled_at=at(10, 0),
        reminder_offset_minutes=30,
        doctor="Dr. Smiles",
        location="Downtown Dental Clinic",
    )


@pytest.fixture
def store(members: list[FamilyMember], dentist: Appointment) -> InMemoryDataStore:
    return InMemoryDataStore(members=members, appointments=[dentist])
