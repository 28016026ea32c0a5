"""
Appointment lifecycle.

    create -> pending
    pending -> confirmed | rejected | cancelled
    confirmed -> cancelled | completed
    cancelled, rejected, completed are terminal

Bookings made by the assistant are confirmed straight away; bookings made
through the web booking flow wait for the expert. That asymmetry lives in
AUTO_CONFIRM_BY_CHANNEL.
"""
from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Any, Optional

from .db.repository import AppointmentRepository
from .errors import AppointmentNotFoundError, InvalidStatusTransitionError
from .schemas import Appointment, AppointmentStatus, Expert, utcnow
from .tools.slots import AllowOverlappingSlots, SlotConflictPolicy

logger = logging.getLogger(__name__)

TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.REJECTED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED}
    ),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.REJECTED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
}

INACTIVE_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.REJECTED})

UPDATABLE_FIELDS = frozenset({"date", "time", "notes", "meeting_link"})

ASSISTANT_BOOKING_NOTE = "Booked via Zeina AI"


class BookingChannel(str, Enum):
    ASSISTANT = "assistant"
    WEB = "web"


AUTO_CONFIRM_BY_CHANNEL: dict[BookingChannel, bool] = {
    BookingChannel.ASSISTANT: True,
    BookingChannel.WEB: False,
}


def can_transition(current: AppointmentStatus, requested: AppointmentStatus) -> bool:
    return requested == current or requested in TRANSITIONS[current]


def _newest_first(appointments: list[Appointment]) -> list[Appointment]:
    # Reversing first keeps later inserts ahead of earlier ones with the same timestamp.
    return sorted(reversed(appointments), key=lambda appt: appt.created_at, reverse=True)


class AppointmentStore:
    def __init__(
        self,
        repository: AppointmentRepository,
        slot_policy: Optional[SlotConflictPolicy] = None,
        meeting_link_template: Optional[str] = None,
    ) -> None:
        self.repository = repository
        self.slot_policy = slot_policy or AllowOverlappingSlots()
        self.meeting_link_template = meeting_link_template

    def create(
        self,
        *,
        user_id: str,
        expert: Expert,
        date: str,
        time: str,
        notes: Optional[str] = None,
    ) -> Appointment:
        appointment_id = f"appt_{uuid.uuid4().hex[:12]}"
        appointment = Appointment(
            id=appointment_id,
            user_id=user_id,
            expert_id=expert.id,
            expert_name=expert.name,
            expert_image=expert.image,
            date=date,
            time=time,
            status=AppointmentStatus.PENDING,
            notes=notes,
            meeting_link=(
                self.meeting_link_template.format(appointment_id=appointment_id)
                if self.meeting_link_template
                else None
            ),
            created_at=utcnow(),
        )
        self.slot_policy.check(appointment, self.repository.list_by_expert(expert.id))
        return self.repository.create(appointment)

    def book(
        self,
        *,
        user_id: str,
        expert: Expert,
        date: str,
        time: str,
        channel: BookingChannel,
        notes: Optional[str] = None,
    ) -> Appointment:
        if notes is None and channel == BookingChannel.ASSISTANT:
            notes = ASSISTANT_BOOKING_NOTE
        appointment = self.create(user_id=user_id, expert=expert, date=date, time=time, notes=notes)
        logger.info("Created appointment %s via %s", appointment.id, channel.value)
        if AUTO_CONFIRM_BY_CHANNEL[channel]:
            appointment = self.update_status(appointment.id, AppointmentStatus.CONFIRMED)
        return appointment

    def get_by_id(self, appointment_id: str) -> Appointment:
        appointment = self.repository.get(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(appointment_id)
        return appointment

    def list_for_user(self, user_id: str, include_inactive: bool = True) -> list[Appointment]:
        appointments = self.repository.list_by_user(user_id)
        if not include_inactive:
            appointments = [appt for appt in appointments if appt.status not in INACTIVE_STATUSES]
        return _newest_first(appointments)

    def list_for_expert(self, expert_id: str) -> list[Appointment]:
        return _newest_first(self.repository.list_by_expert(expert_id))

    def update_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        appointment = self.get_by_id(appointment_id)
        if appointment.status == status:
            return appointment
        if not can_transition(appointment.status, status):
            raise InvalidStatusTransitionError(
                appointment_id, appointment.status.value, status.value
            )
        updated = appointment.model_copy(update={"status": status})
        return self.repository.update(updated)

    def update(self, appointment_id: str, **changes: Any) -> Appointment:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated directly: {', '.join(sorted(unknown))}")
        appointment = self.get_by_id(appointment_id)
        # Validate before anything is written so the record is never half-updated.
        updated = Appointment.model_validate({**appointment.model_dump(), **changes})
        if "date" in changes or "time" in changes:
            self.slot_policy.check(updated, self.repository.list_by_expert(updated.expert_id))
        return self.repository.update(updated)

    def reschedule(self, appointment_id: str, date: str, time: str) -> Appointment:
        return self.update(appointment_id, date=date, time=time)

    def cancel(self, appointment_id: str) -> Appointment:
        return self.update_status(appointment_id, AppointmentStatus.CANCELLED)
