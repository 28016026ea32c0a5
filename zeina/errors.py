from __future__ import annotations


class StoreError(Exception):
    """Base class for record store failures."""


class AppointmentNotFoundError(StoreError):
    def __init__(self, appointment_id: str) -> None:
        super().__init__(f"Appointment {appointment_id!r} not found")
        self.appointment_id = appointment_id


class UserNotFoundError(StoreError):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"User {user_id!r} not found")
        self.user_id = user_id


class InvalidStatusTransitionError(StoreError):
    def __init__(self, appointment_id: str, current: str, requested: str) -> None:
        super().__init__(
            f"Appointment {appointment_id!r} cannot move from {current} to {requested}"
        )
        self.appointment_id = appointment_id
        self.current = current
        self.requested = requested


class SlotUnavailableError(StoreError):
    def __init__(self, expert_id: str, date: str, time: str) -> None:
        super().__init__(f"Expert {expert_id!r} is already booked near {date} {time}")
        self.expert_id = expert_id
        self.date = date
        self.time = time


class StoreCorruptionError(StoreError):
    """The persisted record document cannot be read."""


class StoreWriteError(StoreError):
    """The record document could not be written; nothing was changed."""


class UnknownToolError(Exception):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool {name!r}")
        self.name = name


class ToolArgumentsError(Exception):
    def __init__(self, tool_name: str, fields: list[str]) -> None:
        super().__init__(f"Invalid arguments for {tool_name}: {', '.join(fields) or 'payload'}")
        self.tool_name = tool_name
        self.fields = fields


class ModelError(Exception):
    """The language model could not produce a response."""


class ModelUnavailableError(ModelError):
    """Transient failure: timeout, server error, quota or transport. Safe to retry."""


class ModelRequestError(ModelError):
    """The request was rejected; retrying will not help."""


class ModelConfigurationError(ModelError):
    """Credentials or model settings are missing."""


class SessionClosedError(Exception):
    """The conversation session has been torn down."""
