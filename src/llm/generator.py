"""Text generation contract and its Anthropic-backed implementation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import anthropic
from anthropic import AsyncAnthropic

from src.errors import UpstreamCallError

logger = logging.getLogger(__name__)

# Sonnet handles multi-email synthesis; Haiku tends to drop action items.
DEFAULT_MODEL = "claude-sonnet-4-6"


@dataclass(frozen=True)
class GenerationRequest:
    messages: list[dict[str, str]]
    max_tokens: int
    temperature: float


@dataclass(frozen=True)
class GenerationResult:
    text: str | None = None
    usage: dict[str, Any] | None = field(default=None)


@runtime_checkable
class TextGenerator(Protocol):
    """Interface for the external text-generation service."""

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate text for the given messages.

        Implementations raise UpstreamCallError when the service call fails.
        """
        ...


class AnthropicGenerator:
    """Sends a generation request to Claude and returns its text and token usage.

    Usage::

        generator = AnthropicGenerator()
        result = await generator.generate(request)
    """

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        self._client = AsyncAnthropic(
            api_key=api_key or os.environ.get("ANTHROPIC_API_KEY", "")
        )
        self._model = model or os.environ.get("DIGEST_MODEL", DEFAULT_MODEL)

    @property
    def model(self) -> str:
        return self._model

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Call the Messages API once; no retries.

        Raises:
            UpstreamCallError: if the API call fails or times out.
        """
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                messages=request.messages,  # type: ignore[arg-type]
            )
        except anthropic.APIError as exc:
            raise UpstreamCallError("text_generation", str(exc)) from exc

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        usage = None
        if response.usage is not None:
            usage = {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            }
        logger.debug(
            "Generation finished (model=%s, stop_reason=%s, usage=%s)",
            self._model,
            response.stop_reason,
            usage,
        )
        return GenerationResult(text=text or None, usage=usage)
