"""Typed tool arguments, one model per tool, discriminated on the tool name."""
from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from ..errors import ToolArgumentsError, UnknownToolError
from ..schemas import ToolCall, ToolName
from .slots import normalize_date, normalize_time


def _checked(normalize, value: str) -> str:
    try:
        return normalize(value)
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"unreadable value {value!r}") from exc


class _ToolArguments(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
        extra="ignore",
        frozen=True,
    )


class BookAppointmentArgs(_ToolArguments):
    name: Literal["book_appointment"] = "book_appointment"
    expert_id: str = Field(alias="expertId", min_length=1)
    date: str
    time: str

    @field_validator("date")
    @classmethod
    def _date(cls, value: str) -> str:
        return _checked(normalize_date, value)

    @field_validator("time")
    @classmethod
    def _time(cls, value: str) -> str:
        return _checked(normalize_time, value)


class GetMyAppointmentsArgs(_ToolArguments):
    name: Literal["get_my_appointments"] = "get_my_appointments"


class RescheduleAppointmentArgs(_ToolArguments):
    name: Literal["reschedule_appointment"] = "reschedule_appointment"
    appointment_id: str = Field(alias="appointmentId", min_length=1)
    new_date: str = Field(alias="newDate")
    new_time: str = Field(alias="newTime")

    @field_validator("new_date")
    @classmethod
    def _date(cls, value: str) -> str:
        return _checked(normalize_date, value)

    @field_validator("new_time")
    @classmethod
    def _time(cls, value: str) -> str:
        return _checked(normalize_time, value)


class CancelAppointmentArgs(_ToolArguments):
    name: Literal["cancel_appointment"] = "cancel_appointment"
    appointment_id: str = Field(alias="appointmentId", min_length=1)


class GenerateHealthImageArgs(_ToolArguments):
    name: Literal["generate_health_image"] = "generate_health_image"
    prompt: str = Field(min_length=1)


ToolArguments = Annotated[
    Union[
        BookAppointmentArgs,
        GetMyAppointmentsArgs,
        RescheduleAppointmentArgs,
        CancelAppointmentArgs,
        GenerateHealthImageArgs,
    ],
    Field(discriminator="name"),
]

_ADAPTER: TypeAdapter[ToolArguments] = TypeAdapter(ToolArguments)

KNOWN_TOOLS = frozenset(tool.value for tool in ToolName)


def parse_tool_call(call: ToolCall) -> ToolArguments:
    if call.name not in KNOWN_TOOLS:
        raise UnknownToolError(call.name)
    try:
        return _ADAPTER.validate_python({**call.arguments, "name": call.name})
    except ValidationError as exc:
        fields = sorted({str(error["loc"][-1]) for error in exc.errors() if error["loc"]})
        raise ToolArgumentsError(call.name, fields) from exc
