from __future__ import annotations

import uuid
from typing import NamedTuple, Optional

from ..schemas import (
    Appointment,
    ToolCall,
    ToolCallEvent,
    ToolErrorTag,
    ToolResult,
    UiPayload,
    UiPayloadKind,
    utcnow,
)
from .slots import format_slot


class ToolOutcome(NamedTuple):
    event: ToolCallEvent
    result: ToolResult
    payload: Optional[UiPayload] = None


def build_tool_event(name: str, detail: str, status: str = "completed") -> ToolCallEvent:
    return ToolCallEvent(
        id=uuid.uuid4().hex,
        name=name,
        status=status,
        detail=detail,
        timestamp=utcnow(),
    )


def _appointment_view(appointment: Appointment) -> dict:
    return appointment.model_dump(mode="json")


def tool_failure(call: ToolCall, tag: ToolErrorTag) -> ToolOutcome:
    event = build_tool_event(call.name, f"Failed with {tag.value}", status="failed")
    return ToolOutcome(event, ToolResult(name=call.name, call_id=call.id, error=tag))


def tool_book_appointment(call: ToolCall, appointment: Appointment) -> ToolOutcome:
    detail = f"Booked {format_slot(appointment.date, appointment.time)} with {appointment.expert_name}"
    result = ToolResult(
        name=call.name,
        call_id=call.id,
        payload={"result": "Booking confirmed successfully.", "appointment": _appointment_view(appointment)},
    )
    payload = UiPayload(kind=UiPayloadKind.BOOKING, appointment=appointment)
    return ToolOutcome(build_tool_event(call.name, detail), result, payload)


def tool_list_appointments(call: ToolCall, appointments: list[Appointment]) -> ToolOutcome:
    detail = f"Found {len(appointments)} active appointments"
    result = ToolResult(
        name=call.name,
        call_id=call.id,
        payload={"appointments": [_appointment_view(appt) for appt in appointments]},
    )
    payload = UiPayload(kind=UiPayloadKind.APPOINTMENT_LIST, appointments=appointments)
    return ToolOutcome(build_tool_event(call.name, detail), result, payload)


def tool_reschedule_appointment(call: ToolCall, appointment: Appointment) -> ToolOutcome:
    detail = f"Rescheduled {appointment.id} to {format_slot(appointment.date, appointment.time)}"
    result = ToolResult(
        name=call.name,
        call_id=call.id,
        payload={"result": "Reschedule successful", "appointment": _appointment_view(appointment)},
    )
    # The UI reuses the booking card to confirm the new slot.
    payload = UiPayload(kind=UiPayloadKind.BOOKING, appointment=appointment)
    return ToolOutcome(build_tool_event(call.name, detail), result, payload)


def tool_cancel_appointment(call: ToolCall, appointment: Appointment) -> ToolOutcome:
    detail = f"Cancelled {appointment.id} with {appointment.expert_name}"
    result = ToolResult(
        name=call.name,
        call_id=call.id,
        payload={"result": "Cancellation successful", "appointment": _appointment_view(appointment)},
    )
    payload = UiPayload(kind=UiPayloadKind.CANCELLATION, appointment=appointment)
    return ToolOutcome(build_tool_event(call.name, detail), result, payload)


def tool_generate_image(call: ToolCall, image_base64: str) -> ToolOutcome:
    result = ToolResult(name=call.name, call_id=call.id, payload={"image_base64": image_base64})
    payload = UiPayload(kind=UiPayloadKind.IMAGE, image_base64=image_base64)
    return ToolOutcome(build_tool_event(call.name, "Generated image"), result, payload)
