from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from dateutil import parser as date_parser

from ..errors import SlotUnavailableError
from ..schemas import Appointment, AppointmentStatus

TIME_FORMAT = "%I:%M %p"

_OPEN_STATUSES = {AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED}


def normalize_date(value: str) -> str:
    # ISO dates only; vague phrases like "next week" must be clarified with the user.
    return date_parser.isoparse(value.strip()).date().isoformat()


def normalize_time(value: str) -> str:
    return date_parser.parse(value.strip()).time().strftime(TIME_FORMAT)


def format_slot(date: str, time: str) -> str:
    try:
        dt = datetime.strptime(f"{date} {time}", f"%Y-%m-%d {TIME_FORMAT}")
    except ValueError:
        return f"{date} {time}"
    return dt.strftime("%a %b %d at %I:%M %p").replace(" 0", " ")


def within_buffer(existing_time: str, new_time: str, buffer_minutes: int = 30) -> bool:
    existing_dt = date_parser.parse(existing_time, fuzzy=True)
    new_dt = date_parser.parse(new_time, fuzzy=True)
    delta = abs((existing_dt - new_dt).total_seconds())
    return delta < buffer_minutes * 60


class SlotConflictPolicy(Protocol):
    def check(self, candidate: Appointment, existing: list[Appointment]) -> None:
        """Raise SlotUnavailableError when candidate clashes with an existing booking."""
        ...


class AllowOverlappingSlots:
    """No availability check: any date and time can be booked or rescheduled."""

    def check(self, candidate: Appointment, existing: list[Appointment]) -> None:
        return None


@dataclass(frozen=True)
class BufferedSlotPolicy:
    buffer_minutes: int = 30

    def check(self, candidate: Appointment, existing: list[Appointment]) -> None:
        for other in existing:
            if other.id == candidate.id or other.status not in _OPEN_STATUSES:
                continue
            if other.date != candidate.date:
                continue
            if within_buffer(other.time, candidate.time, self.buffer_minutes):
                raise SlotUnavailableError(candidate.expert_id, candidate.date, candidate.time)


def build_slot_policy(buffer_minutes: int) -> SlotConflictPolicy:
    if buffer_minutes > 0:
        return BufferedSlotPolicy(buffer_minutes=buffer_minutes)
    return AllowOverlappingSlots()
