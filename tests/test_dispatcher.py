from __future__ import annotations

import os
from unittest.mock import MagicMock

import pytest

from zeina.appointments import AppointmentStore, BookingChannel
from zeina.db.local import build_local_repositories
from zeina.errors import ModelUnavailableError, StoreCorruptionError
from zeina.schemas import AppointmentStatus, ToolCall, ToolErrorTag, UiPayloadKind
from zeina.tools.dispatcher import ToolDispatcher
from zeina.tools.slots import BufferedSlotPolicy


def _book_call(expert_id="1", date="2025-11-01", time="10:00 AM"):
    return ToolCall(
        id="call_book",
        name="book_appointment",
        arguments={"expertId": expert_id, "date": date, "time": time},
    )


class TestBooking:
    @pytest.mark.asyncio
    async def test_book_known_expert_is_confirmed(self, dispatcher, appointment_store):
        outcome = await dispatcher.dispatch(_book_call(), user_id="user_demo")

        assert outcome.result.ok
        assert outcome.result.call_id == "call_book"
        appointment = outcome.payload.appointment
        assert outcome.payload.kind == UiPayloadKind.BOOKING
        assert appointment.status == AppointmentStatus.CONFIRMED
        assert appointment.expert_id == "1"
        assert appointment.user_id == "user_demo"
        assert appointment.notes == "Booked via Zeina AI"
        assert outcome.result.payload["appointment"]["id"] == appointment.id
        assert appointment_store.get_by_id(appointment.id).status == AppointmentStatus.CONFIRMED
        assert outcome.event.status == "completed"

    @pytest.mark.asyncio
    async def test_book_unknown_expert(self, dispatcher, appointment_store):
        outcome = await dispatcher.dispatch(_book_call(expert_id="99"), user_id="user_demo")

        assert outcome.result.error == ToolErrorTag.EXPERT_NOT_FOUND
        assert outcome.payload is None
        assert outcome.event.status == "failed"
        assert appointment_store.list_for_user("user_demo") == []

    @pytest.mark.asyncio
    async def test_book_uses_localized_expert_name(self, dispatcher):
        outcome = await dispatcher.dispatch(_book_call(expert_id="5"), user_id="user_demo", language="ar")
        assert outcome.payload.appointment.expert_name == "د. أمل الجابر"

    @pytest.mark.asyncio
    async def test_book_with_invalid_arguments_touches_nothing(self, dispatcher, appointment_store):
        outcome = await dispatcher.dispatch(_book_call(date="sometime soon"), user_id="user_demo")

        assert outcome.result.error == ToolErrorTag.INVALID_ARGUMENTS
        assert appointment_store.list_for_user("user_demo") == []

    @pytest.mark.asyncio
    async def test_book_taken_slot(self, repositories, experts):
        store = AppointmentStore(repositories.appointments, slot_policy=BufferedSlotPolicy(30))
        dispatcher = ToolDispatcher(store, experts)
        await dispatcher.dispatch(_book_call(), user_id="u1")

        outcome = await dispatcher.dispatch(_book_call(time="10:10 AM"), user_id="u2")
        assert outcome.result.error == ToolErrorTag.SLOT_UNAVAILABLE


class TestAppointments:
    @pytest.mark.asyncio
    async def test_list_excludes_cancelled_and_rejected(self, dispatcher, appointment_store, experts):
        expert = experts.get("2")
        kept = appointment_store.book(
            user_id="user_demo", expert=expert, date="2025-11-01", time="09:00 AM", channel=BookingChannel.ASSISTANT
        )
        cancelled = appointment_store.book(
            user_id="user_demo", expert=expert, date="2025-11-02", time="09:00 AM", channel=BookingChannel.ASSISTANT
        )
        appointment_store.cancel(cancelled.id)
        rejected = appointment_store.book(
            user_id="user_demo", expert=expert, date="2025-11-03", time="09:00 AM", channel=BookingChannel.WEB
        )
        appointment_store.update_status(rejected.id, AppointmentStatus.REJECTED)
        appointment_store.book(
            user_id="someone_else", expert=expert, date="2025-11-01", time="09:00 AM", channel=BookingChannel.ASSISTANT
        )

        outcome = await dispatcher.dispatch(ToolCall(name="get_my_appointments"), user_id="user_demo")

        assert [appt.id for appt in outcome.payload.appointments] == [kept.id]
        assert [appt["id"] for appt in outcome.result.payload["appointments"]] == [kept.id]
        assert outcome.payload.kind == UiPayloadKind.APPOINTMENT_LIST

    @pytest.mark.asyncio
    async def test_empty_list_is_valid(self, dispatcher):
        outcome = await dispatcher.dispatch(ToolCall(name="get_my_appointments"), user_id="user_demo")
        assert outcome.result.ok
        assert outcome.result.payload == {"appointments": []}

    @pytest.mark.asyncio
    async def test_reschedule_keeps_status(self, dispatcher):
        booked = (await dispatcher.dispatch(_book_call(), user_id="user_demo")).payload.appointment
        outcome = await dispatcher.dispatch(
            ToolCall(
                name="reschedule_appointment",
                arguments={"appointmentId": booked.id, "newDate": "2025-11-04", "newTime": "4:15 pm"},
            ),
            user_id="user_demo",
        )
        moved = outcome.payload.appointment
        assert (moved.date, moved.time) == ("2025-11-04", "04:15 PM")
        assert moved.status == AppointmentStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_reschedule_unknown_appointment(self, dispatcher):
        outcome = await dispatcher.dispatch(
            ToolCall(
                name="reschedule_appointment",
                arguments={"appointmentId": "appt_missing", "newDate": "2025-11-04", "newTime": "10:00 AM"},
            ),
            user_id="user_demo",
        )
        assert outcome.result.error == ToolErrorTag.APPOINTMENT_NOT_FOUND
        assert outcome.payload is None
        assert outcome.result.model_view()["error"] == "APPOINTMENT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_cancel(self, dispatcher, appointment_store):
        booked = (await dispatcher.dispatch(_book_call(), user_id="user_demo")).payload.appointment
        outcome = await dispatcher.dispatch(
            ToolCall(name="cancel_appointment", arguments={"appointmentId": booked.id}), user_id="user_demo"
        )
        assert outcome.payload.kind == UiPayloadKind.CANCELLATION
        assert outcome.payload.appointment.status == AppointmentStatus.CANCELLED
        listed = await dispatcher.dispatch(ToolCall(name="get_my_appointments"), user_id="user_demo")
        assert listed.payload.appointments == []

    @pytest.mark.asyncio
    async def test_cancel_unknown_appointment(self, dispatcher):
        outcome = await dispatcher.dispatch(
            ToolCall(name="cancel_appointment", arguments={"appointmentId": "appt_missing"}), user_id="user_demo"
        )
        assert outcome.result.error == ToolErrorTag.APPOINTMENT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_cancel_completed_appointment(self, dispatcher, appointment_store):
        booked = (await dispatcher.dispatch(_book_call(), user_id="user_demo")).payload.appointment
        appointment_store.update_status(booked.id, AppointmentStatus.COMPLETED)
        outcome = await dispatcher.dispatch(
            ToolCall(name="cancel_appointment", arguments={"appointmentId": booked.id}), user_id="user_demo"
        )
        assert outcome.result.error == ToolErrorTag.INVALID_STATUS_TRANSITION

    @pytest.mark.asyncio
    async def test_store_failure_becomes_error_result(self, experts):
        repository = MagicMock()
        repository.list_by_user.side_effect = StoreCorruptionError("disk on fire")
        dispatcher = ToolDispatcher(AppointmentStore(repository), experts)

        outcome = await dispatcher.dispatch(ToolCall(name="get_my_appointments"), user_id="user_demo")
        assert outcome.result.error == ToolErrorTag.STORE_ERROR
        assert "disk on fire" not in str(outcome.result.model_view())

    @pytest.mark.asyncio
    async def test_failed_write_leaves_no_booking(self, experts, tmp_path, monkeypatch):
        repositories = build_local_repositories(tmp_path / "records.json")
        store = AppointmentStore(repositories.appointments)
        dispatcher = ToolDispatcher(store, experts)

        def disk_full(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", disk_full)
        outcome = await dispatcher.dispatch(_book_call(), user_id="user_demo")

        assert outcome.result.error == ToolErrorTag.STORE_ERROR
        assert outcome.payload is None
        assert store.list_for_user("user_demo") == []
        assert not (tmp_path / "records.json").exists()


class TestImages:
    @pytest.mark.asyncio
    async def test_generate_image(self, dispatcher, image_generator):
        outcome = await dispatcher.dispatch(
            ToolCall(name="generate_health_image", arguments={"prompt": "a balanced breakfast"}),
            user_id="user_demo",
        )
        assert image_generator.prompts == ["a balanced breakfast"]
        assert outcome.payload.kind == UiPayloadKind.IMAGE
        assert outcome.payload.image_base64 == "aW1hZ2U="
        assert outcome.result.payload["image_base64"] == "aW1hZ2U="
        assert outcome.result.model_view() == {"result": "Image generated successfully."}

    @pytest.mark.asyncio
    async def test_no_image_data(self, dispatcher, image_generator):
        image_generator.image = None
        outcome = await dispatcher.dispatch(
            ToolCall(name="generate_health_image", arguments={"prompt": "yoga"}), user_id="user_demo"
        )
        assert outcome.result.error == ToolErrorTag.IMAGE_GENERATION_FAILED
        assert outcome.payload is None

    @pytest.mark.asyncio
    async def test_image_model_error(self, appointment_store, experts):
        generator = MagicMock()

        async def fail(prompt):
            raise ModelUnavailableError("quota")

        generator.generate = fail
        dispatcher = ToolDispatcher(appointment_store, experts, generator)
        outcome = await dispatcher.dispatch(
            ToolCall(name="generate_health_image", arguments={"prompt": "yoga"}), user_id="user_demo"
        )
        assert outcome.result.error == ToolErrorTag.IMAGE_GENERATION_FAILED

    @pytest.mark.asyncio
    async def test_unexpected_image_failure(self, appointment_store, experts):
        generator = MagicMock()

        async def fail(prompt):
            raise RuntimeError("unparseable response")

        generator.generate = fail
        dispatcher = ToolDispatcher(appointment_store, experts, generator)
        outcome = await dispatcher.dispatch(
            ToolCall(name="generate_health_image", arguments={"prompt": "yoga"}), user_id="user_demo"
        )
        assert outcome.result.error == ToolErrorTag.IMAGE_GENERATION_FAILED
        assert outcome.payload is None

    @pytest.mark.asyncio
    async def test_without_image_generator(self, appointment_store, experts):
        dispatcher = ToolDispatcher(appointment_store, experts)
        outcome = await dispatcher.dispatch(
            ToolCall(name="generate_health_image", arguments={"prompt": "yoga"}), user_id="user_demo"
        )
        assert outcome.result.error == ToolErrorTag.IMAGE_GENERATION_FAILED


@pytest.mark.asyncio
async def test_unknown_tool(dispatcher):
    outcome = await dispatcher.dispatch(ToolCall(name="send_sms", arguments={}), user_id="user_demo")
    assert outcome.result.error == ToolErrorTag.UNKNOWN_TOOL
    assert outcome.result.name == "send_sms"
