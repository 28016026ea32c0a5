from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    REJECTED = "rejected"


class Appointment(BaseModel):
    id: str
    user_id: str
    expert_id: str
    expert_name: str
    expert_image: str = ""
    date: str
    time: str
    status: AppointmentStatus = AppointmentStatus.PENDING
    notes: Optional[str] = None
    meeting_link: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Review(BaseModel):
    id: str
    item_id: str
    user_id: str
    user_name: str = "Guest"
    rating: int = Field(ge=1, le=5)
    comment: str = ""
    date: datetime = Field(default_factory=utcnow)


class RatingSummary(BaseModel):
    item_id: str
    rating: float
    count: int


class UserProfile(BaseModel):
    id: str
    name: str
    email: str = ""
    role: Literal["user", "expert", "admin"] = "user"
    age: Optional[int] = None
    marital_status: Optional[Literal["single", "married", "divorced", "widowed"]] = None
    life_stage: Optional[
        Literal["general", "tryingToConceive", "pregnant", "postpartum", "menopause"]
    ] = None
    children_count: Optional[int] = None
    is_trying_to_conceive: bool = False
    activity_level: Optional[Literal["sedentary", "moderate", "active"]] = None
    health_interests: list[str] = Field(default_factory=list)


class Expert(BaseModel):
    id: str
    name: str
    title: str
    image: str
    category: str
    rating: float
    price: int


class CatalogService(BaseModel):
    id: str
    title: str
    description: str
    rating: float
    review_count: int


class ToolName(str, Enum):
    BOOK_APPOINTMENT = "book_appointment"
    GET_MY_APPOINTMENTS = "get_my_appointments"
    RESCHEDULE_APPOINTMENT = "reschedule_appointment"
    CANCEL_APPOINTMENT = "cancel_appointment"
    GENERATE_HEALTH_IMAGE = "generate_health_image"


class ToolErrorTag(str, Enum):
    EXPERT_NOT_FOUND = "EXPERT_NOT_FOUND"
    APPOINTMENT_NOT_FOUND = "APPOINTMENT_NOT_FOUND"
    IMAGE_GENERATION_FAILED = "IMAGE_GENERATION_FAILED"
    INVALID_ARGUMENTS = "INVALID_ARGUMENTS"
    UNKNOWN_TOOL = "UNKNOWN_TOOL"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    SLOT_UNAVAILABLE = "SLOT_UNAVAILABLE"
    STORE_ERROR = "STORE_ERROR"


TOOL_ERROR_HINTS: dict[ToolErrorTag, str] = {
    ToolErrorTag.EXPERT_NOT_FOUND: "No expert exists with that id. Use an id from the expert list.",
    ToolErrorTag.APPOINTMENT_NOT_FOUND: "No appointment exists with that id. Call get_my_appointments to find it.",
    ToolErrorTag.IMAGE_GENERATION_FAILED: "The image could not be generated. Continue without an image.",
    ToolErrorTag.INVALID_ARGUMENTS: "Some arguments were missing or malformed. Ask the user for the missing details.",
    ToolErrorTag.UNKNOWN_TOOL: "That tool does not exist.",
    ToolErrorTag.INVALID_STATUS_TRANSITION: "The appointment can no longer be changed in that way.",
    ToolErrorTag.SLOT_UNAVAILABLE: "That time is already taken for this expert. Suggest another time.",
    ToolErrorTag.STORE_ERROR: "The booking system is unavailable right now.",
}

# Keys whose values are delivered to the UI but never echoed back to the model.
MODEL_HIDDEN_KEYS = frozenset({"image_base64"})


class ToolCall(BaseModel):
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    id: Optional[str] = None


class ToolResult(BaseModel):
    name: str
    call_id: Optional[str] = None
    payload: dict[str, Any] = Field(default_factory=dict)
    error: Optional[ToolErrorTag] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def model_view(self) -> dict[str, Any]:
        """The result as the language model sees it."""
        if self.error is not None:
            return {"error": self.error.value, "detail": TOOL_ERROR_HINTS[self.error]}
        view = {key: value for key, value in self.payload.items() if key not in MODEL_HIDDEN_KEYS}
        if len(view) != len(self.payload):
            view.setdefault("result", "Image generated successfully.")
        return view


class ConversationTurn(BaseModel):
    role: Literal["user", "model"]
    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_results: list[ToolResult] = Field(default_factory=list)


class UiPayloadKind(str, Enum):
    BOOKING = "booking"
    APPOINTMENT_LIST = "appointment_list"
    CANCELLATION = "cancellation"
    IMAGE = "image"


class UiPayload(BaseModel):
    kind: UiPayloadKind
    appointment: Optional[Appointment] = None
    appointments: Optional[list[Appointment]] = None
    image_base64: Optional[str] = None


class ChatReply(BaseModel):
    text: str
    payloads: list[UiPayload] = Field(default_factory=list)
    discarded: bool = False

    def _last(self, kind: UiPayloadKind) -> Optional[UiPayload]:
        for payload in reversed(self.payloads):
            if payload.kind == kind:
                return payload
        return None

    @property
    def booking_details(self) -> Optional[Appointment]:
        payload = self._last(UiPayloadKind.BOOKING)
        return payload.appointment if payload else None

    @property
    def appointment_list(self) -> Optional[list[Appointment]]:
        payload = self._last(UiPayloadKind.APPOINTMENT_LIST)
        return payload.appointments if payload else None

    @property
    def cancellation_details(self) -> Optional[Appointment]:
        payload = self._last(UiPayloadKind.CANCELLATION)
        return payload.appointment if payload else None

    @property
    def generated_image(self) -> Optional[str]:
        payload = self._last(UiPayloadKind.IMAGE)
        return payload.image_base64 if payload else None


class ToolCallEvent(BaseModel):
    id: str
    name: str
    status: str
    detail: str
    timestamp: datetime = Field(default_factory=utcnow)


class SessionStartRequest(BaseModel):
    language: Optional[str] = None
    user_id: Optional[str] = None


class SessionStartResponse(BaseModel):
    session_id: str
    language: str
    user_id: str


class MessageRequest(BaseModel):
    text: str = Field(min_length=1)


class LanguageRequest(BaseModel):
    language: str


class ProfileRequest(BaseModel):
    user_id: Optional[str] = None


class BookingRequest(BaseModel):
    user_id: str
    expert_id: str
    date: str
    time: str
    notes: Optional[str] = None


class StatusChangeRequest(BaseModel):
    status: AppointmentStatus


class ReviewRequest(BaseModel):
    item_id: str
    user_id: str = "guest"
    user_name: str = "Guest"
    rating: int = Field(ge=1, le=5)
    comment: str = ""
