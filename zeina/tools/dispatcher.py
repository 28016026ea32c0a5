from __future__ import annotations

import logging
from typing import Optional

from ..appointments import AppointmentStore, BookingChannel
from ..catalog import ExpertCatalog
from ..errors import (
    AppointmentNotFoundError,
    InvalidStatusTransitionError,
    ModelError,
    SlotUnavailableError,
    StoreError,
    ToolArgumentsError,
    UnknownToolError,
)
from ..schemas import ToolCall, ToolErrorTag
from ..services.gemini import ImageGenerator
from .arguments import (
    BookAppointmentArgs,
    CancelAppointmentArgs,
    GenerateHealthImageArgs,
    GetMyAppointmentsArgs,
    RescheduleAppointmentArgs,
    parse_tool_call,
)
from .handlers import (
    ToolOutcome,
    tool_book_appointment,
    tool_cancel_appointment,
    tool_failure,
    tool_generate_image,
    tool_list_appointments,
    tool_reschedule_appointment,
)

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """Validate and execute one tool call at a time.

    Every call yields exactly one ToolOutcome. Store and argument failures are
    folded into error results tagged with a ToolErrorTag; nothing raised by a
    tool reaches the conversation loop.
    """

    def __init__(
        self,
        appointments: AppointmentStore,
        experts: ExpertCatalog,
        image_generator: Optional[ImageGenerator] = None,
    ) -> None:
        self.appointments = appointments
        self.experts = experts
        self.image_generator = image_generator

    async def dispatch(self, call: ToolCall, *, user_id: str, language: str = "en") -> ToolOutcome:
        try:
            arguments = parse_tool_call(call)
        except UnknownToolError:
            logger.warning("Model requested unknown tool %r", call.name)
            return tool_failure(call, ToolErrorTag.UNKNOWN_TOOL)
        except ToolArgumentsError as exc:
            logger.info("Rejected %s arguments: %s", call.name, ", ".join(exc.fields))
            return tool_failure(call, ToolErrorTag.INVALID_ARGUMENTS)

        try:
            outcome = await self._execute(call, arguments, user_id=user_id, language=language)
        except AppointmentNotFoundError:
            outcome = tool_failure(call, ToolErrorTag.APPOINTMENT_NOT_FOUND)
        except InvalidStatusTransitionError:
            outcome = tool_failure(call, ToolErrorTag.INVALID_STATUS_TRANSITION)
        except SlotUnavailableError:
            outcome = tool_failure(call, ToolErrorTag.SLOT_UNAVAILABLE)
        except StoreError:
            logger.exception("Store failure while running %s", call.name)
            outcome = tool_failure(call, ToolErrorTag.STORE_ERROR)

        logger.info(
            "Tool %s %s%s",
            call.name,
            outcome.event.status,
            f" ({outcome.result.error.value})" if outcome.result.error else "",
        )
        return outcome

    async def _execute(self, call: ToolCall, arguments, *, user_id: str, language: str) -> ToolOutcome:
        if isinstance(arguments, BookAppointmentArgs):
            return self._book(call, arguments, user_id, language)
        if isinstance(arguments, GetMyAppointmentsArgs):
            appointments = self.appointments.list_for_user(user_id, include_inactive=False)
            return tool_list_appointments(call, appointments)
        if isinstance(arguments, RescheduleAppointmentArgs):
            appointment = self.appointments.reschedule(
                arguments.appointment_id, arguments.new_date, arguments.new_time
            )
            return tool_reschedule_appointment(call, appointment)
        if isinstance(arguments, CancelAppointmentArgs):
            return tool_cancel_appointment(call, self.appointments.cancel(arguments.appointment_id))
        if isinstance(arguments, GenerateHealthImageArgs):
            return await self._generate_image(call, arguments)
        raise UnknownToolError(call.name)

    def _book(self, call: ToolCall, arguments: BookAppointmentArgs, user_id: str, language: str) -> ToolOutcome:
        expert = self.experts.get(arguments.expert_id, language)
        if expert is None:
            return tool_failure(call, ToolErrorTag.EXPERT_NOT_FOUND)
        appointment = self.appointments.book(
            user_id=user_id,
            expert=expert,
            date=arguments.date,
            time=arguments.time,
            channel=BookingChannel.ASSISTANT,
        )
        return tool_book_appointment(call, appointment)

    async def _generate_image(self, call: ToolCall, arguments: GenerateHealthImageArgs) -> ToolOutcome:
        if self.image_generator is None:
            return tool_failure(call, ToolErrorTag.IMAGE_GENERATION_FAILED)
        try:
            image = await self.image_generator.generate(arguments.prompt)
        except ModelError as exc:
            logger.warning("Image generation failed: %s", exc)
            image = None
        except Exception:
            logger.exception("Unexpected image generator failure")
            image = None
        if not image:
            return tool_failure(call, ToolErrorTag.IMAGE_GENERATION_FAILED)
        return tool_generate_image(call, image)
