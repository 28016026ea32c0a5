"""
Shared fakes and fixtures.

The model and the image generator are replaced by scripted fakes; storage
uses the in-memory repositories.
"""
from __future__ import annotations

from typing import Optional

import pytest

from zeina.agents.assistant import ConversationSession
from zeina.appointments import AppointmentStore
from zeina.catalog import ExpertCatalog
from zeina.config import Settings
from zeina.db.repository import build_memory_repositories
from zeina.ratings import RatingAggregator
from zeina.services.gemini import ModelRequest, ModelResponse
from zeina.tools.dispatcher import ToolDispatcher


class ScriptedModel:
    """Plays back a fixed sequence of steps, one per model call.

    A step is a ModelResponse, an exception to raise, or an async callable
    taking the request.
    """

    def __init__(self, *steps) -> None:
        self.steps = list(steps)
        self.requests: list[ModelRequest] = []

    async def generate(self, request: ModelRequest) -> ModelResponse:
        self.requests.append(request)
        if not self.steps:
            raise AssertionError("Model called more often than scripted")
        step = self.steps.pop(0)
        if isinstance(step, BaseException):
            raise step
        if callable(step):
            return await step(request)
        return step


class FakeImageGenerator:
    def __init__(self, image: Optional[str] = "aW1hZ2U=") -> None:
        self.image = image
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> Optional[str]:
        self.prompts.append(prompt)
        return self.image


@pytest.fixture
def settings():
    return Settings(
        storage_backend="memory",
        gemini_api_key=None,
        model_timeout_seconds=1,
        model_max_attempts=2,
        model_retry_backoff_seconds=0,
        max_tool_rounds=5,
        history_max_turns=0,
        default_language="en",
        demo_user_id="user_demo",
        slot_conflict_buffer_minutes=0,
        expert_seed_review_count=25,
    )


@pytest.fixture
def repositories():
    return build_memory_repositories()


@pytest.fixture
def experts():
    return ExpertCatalog()


@pytest.fixture
def ratings(repositories):
    return RatingAggregator(repositories.reviews)


@pytest.fixture
def appointment_store(repositories):
    return AppointmentStore(
        repositories.appointments,
        meeting_link_template="https://meet.zeina.health/{appointment_id}",
    )


@pytest.fixture
def image_generator():
    return FakeImageGenerator()


@pytest.fixture
def dispatcher(appointment_store, experts, image_generator):
    return ToolDispatcher(appointment_store, experts, image_generator)


@pytest.fixture
def make_session(dispatcher, experts, ratings, settings):
    def factory(model, **kwargs) -> ConversationSession:
        return ConversationSession(model, dispatcher, experts, ratings, settings, **kwargs)

    return factory
