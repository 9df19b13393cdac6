"""
Read port onto the family health data store.

The engine reads a fresh snapshot through this port on every tick. Persistence
and CRUD belong to the store; InMemoryDataStore is the list-backed version used
for demos and tests.
"""

from collections.abc import Sequence
from typing import Protocol

from kinwell.domain.models import Appointment, FamilyMember, HealthRecord, Prescription


class DataStore(Protocol):
    """Ordered, read-only views of the records the engine consumes."""

    def appointments(self) -> Sequence[Appointment]: ...

    def family_members(self) -> Sequence[FamilyMember]: ...

    def health_records(self, member_id: str) -> Sequence[HealthRecord]: ...

    def prescriptions(self, member_id: str) -> Sequence[Prescription]: ...


class InMemoryDataStore:
    """List-backed store preserving insertion order."""

    def __init__(
        self,
        members: Sequence[FamilyMember] = (),
        appointments: Sequence[Appointment] = (),
    ) -> None:
        self._members: list[FamilyMember] = list(members)
        self._appointments: list[Appointment] = list(appointments)
        self._records: list[HealthRecord] = []
        self._prescriptions: list[Prescription] = []

    def appointments(self) -> Sequence[Appointment]:
        return tuple(self._appointments)

    def family_members(self) -> Sequence[FamilyMember]:
        return tuple(self._members)

    def health_records(self, member_id: str) -> Sequence[HealthRecord]:
        return tuple(r for r in self._records if r.member_id == member_id)

    def prescriptions(self, member_id: str) -> Sequence[Prescription]:
        return tuple(p for p in self._prescriptions if p.member_id == member_id)

    def member(self, member_id: str) -> FamilyMember | None:
        return next((m for m in self._members if m.id == member_id), None)

    def add_member(self, member: FamilyMember) -> None:
        self._members.append(member)

    def add_appointment(self, appointment: Appointment) -> None:
        self._appointments.append(appointment)

    def add_health_record(self, record: HealthRecord) -> None:
        self._records.append(record)

    def add_prescription(self, prescription: Prescription) -> None:
        self._prescriptions.append(prescription)
