from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..catalog import ExpertCatalog
from ..config import Settings
from ..errors import (
    ModelConfigurationError,
    ModelError,
    ModelRequestError,
    ModelUnavailableError,
    SessionClosedError,
)
from ..ratings import RatingAggregator
from ..schemas import ChatReply, ConversationTurn, ToolCallEvent, UiPayload, UserProfile
from ..services.gemini import ModelClient, ModelRequest, ModelResponse
from ..tools.catalog import TOOL_DECLARATIONS
from ..tools.dispatcher import ToolDispatcher
from .history import HistoryPolicy, build_history_policy
from .prompts import apology, build_system_instruction, cannot_connect

logger = logging.getLogger(__name__)


class ConversationSession:
    """One logical conversation between a user and the assistant.

    A user message and everything the model does in response (tool calls,
    tool results, the final reply) form one exchange. The exchange is staged
    and only appended to ``history`` once the final reply is in, so a failed
    exchange leaves history exactly as it was. Tool side effects already
    applied to the store before a failure are kept.
    """

    def __init__(
        self,
        model: ModelClient,
        dispatcher: ToolDispatcher,
        experts: ExpertCatalog,
        ratings: RatingAggregator,
        settings: Settings,
        *,
        session_id: Optional[str] = None,
        language: Optional[str] = None,
        user_id: Optional[str] = None,
        history_policy: Optional[HistoryPolicy] = None,
        tool_declarations: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self.model = model
        self.dispatcher = dispatcher
        self.experts = experts
        self.ratings = ratings
        self.settings = settings
        self.language = language or settings.default_language
        self.user_id = user_id or settings.demo_user_id
        self.profile: Optional[UserProfile] = None
        self.history_policy = history_policy or build_history_policy(settings.history_max_turns)
        self.tool_declarations = tool_declarations if tool_declarations is not None else TOOL_DECLARATIONS
        self._history: list[ConversationTurn] = []
        self._tool_events: list[ToolCallEvent] = []
        self._lock = asyncio.Lock()
        self._closed = False
        # Bumped by reset(); an exchange started under an older generation is stale.
        self._generation = 0

    @property
    def history(self) -> list[ConversationTurn]:
        return list(self._history)

    @property
    def tool_events(self) -> list[ToolCallEvent]:
        return list(self._tool_events)

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def set_language(self, language: str) -> None:
        self.language = language

    def set_user_profile(self, profile: Optional[UserProfile]) -> None:
        self.profile = profile
        self.user_id = profile.id if profile else self.settings.demo_user_id

    def reset(self) -> None:
        if self._lock.locked():
            logger.info("Session %s reset with an exchange in flight", self.session_id)
        self._generation += 1
        self._history = []

    def close(self) -> None:
        if self._lock.locked():
            logger.info("Session %s closed with an exchange in flight", self.session_id)
        self._closed = True

    def system_instruction(self) -> str:
        experts = self.experts.experts(self.language)
        summaries = {
            expert.id: self.ratings.summary(
                expert.id, expert.rating, self.settings.expert_seed_review_count
            )
            for expert in experts
        }
        return build_system_instruction(self.language, experts, summaries, self.profile)

    async def send_message(self, text: str) -> ChatReply:
        if self._closed:
            raise SessionClosedError(f"Session {self.session_id} is closed")
        async with self._lock:
            # A message queued behind an exchange that outlived the session.
            if self._closed:
                return ChatReply(text="", discarded=True)
            return await self._exchange(text)

    def _abandoned(self, generation: int) -> bool:
        return self._closed or generation != self._generation

    async def _exchange(self, text: str) -> ChatReply:
        language = self.language
        generation = self._generation
        pending = [ConversationTurn(role="user", content=text)]
        payloads: list[UiPayload] = []
        tool_rounds = 0
        try:
            while True:
                response = await self._call_model(pending)
                if self._abandoned(generation):
                    return ChatReply(text="", discarded=True)
                if not response.tool_calls:
                    pending.append(ConversationTurn(role="model", content=response.text))
                    break
                tool_rounds += 1
                if tool_rounds > self.settings.max_tool_rounds:
                    raise ModelRequestError(
                        f"Model kept calling tools after {self.settings.max_tool_rounds} rounds"
                    )
                pending.append(
                    ConversationTurn(role="model", content=response.text, tool_calls=response.tool_calls)
                )
                for call in response.tool_calls:
                    if self._abandoned(generation):
                        return ChatReply(text="", discarded=True)
                    outcome = await self.dispatcher.dispatch(call, user_id=self.user_id, language=language)
                    self._tool_events.append(outcome.event)
                    pending.append(ConversationTurn(role="user", tool_results=[outcome.result]))
                    if outcome.payload is not None:
                        payloads.append(outcome.payload)
        except ModelConfigurationError as exc:
            logger.error("Model is not configured: %s", exc)
            return ChatReply(text=f"{cannot_connect(language)} (Missing API Key)")
        except ModelError as exc:
            logger.warning("Abandoning exchange in session %s: %s", self.session_id, exc)
            return ChatReply(text=apology(language))
        except Exception:
            logger.exception("Unexpected failure in session %s", self.session_id)
            return ChatReply(text=apology(language))

        if self._abandoned(generation):
            return ChatReply(text="", discarded=True)
        self._history = self.history_policy.apply(self._history + pending)
        return ChatReply(text=pending[-1].content, payloads=payloads)

    async def _call_model(self, pending: list[ConversationTurn]) -> ModelResponse:
        request = ModelRequest(
            system_instruction=self.system_instruction(),
            tool_declarations=self.tool_declarations,
            history=[*self._history, *pending],
        )
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.settings.model_max_attempts),
            wait=wait_exponential(multiplier=self.settings.model_retry_backoff_seconds, max=30),
            retry=retry_if_exception_type(ModelUnavailableError),
            before_sleep=self._log_retry,
            reraise=True,
        ):
            with attempt:
                response = await self._generate(request)
        return response

    async def _generate(self, request: ModelRequest) -> ModelResponse:
        try:
            return await asyncio.wait_for(
                self.model.generate(request),
                timeout=self.settings.model_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise ModelUnavailableError(
                f"Model call timed out after {self.settings.model_timeout_seconds}s"
            ) from exc

    def _log_retry(self, retry_state) -> None:
        logger.warning(
            "Retrying model call for session %s (attempt %d): %s",
            self.session_id,
            retry_state.attempt_number,
            retry_state.outcome.exception(),
        )
