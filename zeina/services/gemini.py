# Gemini service wrapper
# Model turns and image generation go through google-genai; everything above this
# module only sees ModelRequest/ModelResponse and base64 image strings.
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..errors import (
    ModelConfigurationError,
    ModelError,
    ModelRequestError,
    ModelUnavailableError,
)
from ..schemas import ConversationTurn, ToolCall

logger = logging.getLogger(__name__)

IMAGE_ASPECT_RATIO = "1:1"
IMAGE_STYLE_PREFIX = (
    "High quality, photorealistic, 8k resolution, soft lighting, warm colors, "
    "women's health context: "
)


@dataclass
class ModelRequest:
    system_instruction: str
    tool_declarations: list[dict[str, Any]]
    history: list[ConversationTurn]

    @property
    def new_user_message(self) -> str:
        for turn in reversed(self.history):
            if turn.role == "user" and not turn.tool_results:
                return turn.content
        return ""


@dataclass
class ModelResponse:
    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)


class ModelClient(Protocol):
    async def generate(self, request: ModelRequest) -> ModelResponse:
        ...


class ImageGenerator(Protocol):
    async def generate(self, prompt: str) -> Optional[str]:
        """Return base64-encoded image bytes, or None when no image came back."""
        ...


def wrap_image_prompt(prompt: str) -> str:
    return f"{IMAGE_STYLE_PREFIX}{prompt.strip()}"


def classify_api_error(exc: genai_errors.APIError) -> ModelError:
    code = getattr(exc, "code", None)
    if isinstance(exc, genai_errors.ServerError) or code in (408, 429):
        return ModelUnavailableError(f"Gemini unavailable ({code})")
    if code in (401, 403):
        return ModelConfigurationError(f"Gemini rejected the credentials ({code})")
    return ModelRequestError(f"Gemini rejected the request ({code})")


def to_gemini_contents(turns: list[ConversationTurn]) -> list[types.Content]:
    """Convert history to Gemini contents.

    Consecutive tool-result turns are merged into a single user content so the
    function responses line up with the function calls of the preceding model turn.
    """
    contents: list[types.Content] = []
    previous_was_results = False
    for turn in turns:
        if turn.tool_results:
            parts = [
                types.Part(
                    function_response=types.FunctionResponse(
                        id=result.call_id,
                        name=result.name,
                        response=result.model_view(),
                    )
                )
                for result in turn.tool_results
            ]
            if previous_was_results:
                contents[-1].parts.extend(parts)
            else:
                contents.append(types.Content(role="user", parts=parts))
            previous_was_results = True
            continue

        previous_was_results = False
        parts = []
        if turn.content:
            parts.append(types.Part.from_text(text=turn.content))
        for call in turn.tool_calls:
            parts.append(
                types.Part(
                    function_call=types.FunctionCall(id=call.id, name=call.name, args=call.arguments)
                )
            )
        if parts:
            contents.append(types.Content(role=turn.role, parts=parts))
    return contents


def _response_parts(response: types.GenerateContentResponse) -> list[types.Part]:
    candidates = response.candidates or []
    if not candidates or candidates[0].content is None:
        return []
    return list(candidates[0].content.parts or [])


def from_gemini_response(response: types.GenerateContentResponse) -> ModelResponse:
    parts = _response_parts(response)
    text = "".join(part.text for part in parts if part.text and not part.thought)
    tool_calls = [
        ToolCall(
            id=part.function_call.id,
            name=part.function_call.name or "",
            arguments=dict(part.function_call.args or {}),
        )
        for part in parts
        if part.function_call
    ]
    return ModelResponse(text=text, tool_calls=tool_calls)


class _GeminiCapability:
    def __init__(self, api_key: Optional[str], model: str, client: Optional[genai.Client] = None) -> None:
        self.api_key = api_key
        self.model = model
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise ModelConfigurationError("GEMINI_API_KEY is not configured")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def _generate_content(self, contents, config: types.GenerateContentConfig):
        try:
            return await self.client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as exc:
            raise classify_api_error(exc) from exc
        except httpx.TransportError as exc:
            raise ModelUnavailableError(f"Transport error talking to Gemini: {type(exc).__name__}") from exc


class GeminiModelClient(_GeminiCapability):
    async def generate(self, request: ModelRequest) -> ModelResponse:
        config = types.GenerateContentConfig(
            system_instruction=request.system_instruction,
            tools=[types.Tool(function_declarations=request.tool_declarations)],
        )
        response = await self._generate_content(to_gemini_contents(request.history), config)
        return from_gemini_response(response)


class GeminiImageGenerator(_GeminiCapability):
    async def generate(self, prompt: str) -> Optional[str]:
        config = types.GenerateContentConfig(
            image_config=types.ImageConfig(aspect_ratio=IMAGE_ASPECT_RATIO),
        )
        response = await self._generate_content(wrap_image_prompt(prompt), config)
        for part in _response_parts(response):
            if part.inline_data and part.inline_data.data:
                return base64.b64encode(part.inline_data.data).decode("ascii")
        logger.warning("Image model returned no image data")
        return None
