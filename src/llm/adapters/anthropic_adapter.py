# src/llm/adapters/anthropic_adapter.py - v3
"""Anthropic Claude adapter implementing BaseLLMClient.

Uses the official anthropic SDK. Supports vision, streaming and structured
outputs via a forced tool call.
"""

from __future__ import annotations

import base64
import json
import logging
import time
from typing import Any, AsyncIterator

from pydantic import BaseModel

from factlens.llm.base_client import BaseLLMClient, wrap_provider_error
from factlens.llm.models import ImageInput, LLMResponse, Message

logger = logging.getLogger(__name__)


class AnthropicAdapter(BaseLLMClient):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        **kwargs: Any,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self.__client = None  # Lazy initialization

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            try:
                import anthropic
            except ImportError as e:
                raise ImportError(
                    "anthropic package required: pip install factlens[anthropic]"
                ) from e
            self.__client = anthropic.AsyncAnthropic(api_key=self._api_key or "")
        return self.__client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        """Text completion via Anthropic Messages API."""
        kwargs = self._build_kwargs(
            [self._to_api_message(m) for m in messages], system, max_tokens, temperature
        )
        if response_format is not None:
            self._force_structured_output(kwargs, response_format)
        return await self._create(kwargs, structured=response_format is not None)

    async def complete_with_vision(
        self,
        messages: list[Message],
        images: list[ImageInput],
        system: str | None = None,
        max_tokens: int = 4096,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        """Vision-enabled completion with images ahead of the prompt text."""
        content_blocks: list[dict[str, Any]] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": img.media_type,
                    "data": base64.b64encode(img.data).decode("ascii"),
                },
            }
            for img in images
        ]
        content_blocks.extend({"type": "text", "text": m.content} for m in messages)

        kwargs = self._build_kwargs(
            [{"role": "user", "content": content_blocks}], system, max_tokens, None
        )
        if response_format is not None:
            self._force_structured_output(kwargs, response_format)
        return await self._create(kwargs, structured=response_format is not None)

    async def stream(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
    ) -> AsyncIterator[str]:
        kwargs = self._build_kwargs(
            [self._to_api_message(m) for m in messages], system, max_tokens, temperature
        )
        try:
            async with self._client.messages.stream(**kwargs) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield text
        except Exception as exc:
            raise wrap_provider_error(exc, "anthropic") from exc

    @property
    def supports_vision(self) -> bool:
        return True

    @property
    def provider_name(self) -> str:
        return "anthropic"

    # --- Internal helpers ---

    async def _create(self, kwargs: dict[str, Any], structured: bool) -> LLMResponse:
        start = time.monotonic()
        try:
            response = await self._client.messages.create(**kwargs)
        except Exception as exc:
            raise wrap_provider_error(exc, "anthropic") from exc
        latency_ms = int((time.monotonic() - start) * 1000)

        return LLMResponse(
            content=self._extract_content(response, structured),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model,
            provider="anthropic",
            latency_ms=latency_ms,
            raw_response=response,
        )

    def _build_kwargs(
        self,
        api_messages: list[dict[str, Any]],
        system: str | None,
        max_tokens: int,
        temperature: float | None,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": api_messages,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if system:
            kwargs["system"] = system
        return kwargs

    @staticmethod
    def _force_structured_output(kwargs: dict[str, Any], response_format: type[BaseModel]) -> None:
        kwargs["tools"] = [
            {
                "name": "structured_output",
                "description": "Return structured data matching the schema",
                "input_schema": response_format.model_json_schema(),
            }
        ]
        kwargs["tool_choice"] = {"type": "tool", "name": "structured_output"}

    @staticmethod
    def _to_api_message(m: Message) -> dict[str, Any]:
        return {"role": m.role, "content": m.content}

    @staticmethod
    def _extract_content(response: Any, structured: bool) -> str:
        """Extract text from Anthropic response content blocks."""
        for block in response.content:
            if structured and getattr(block, "type", None) == "tool_use":
                return json.dumps(block.input)
            if getattr(block, "type", None) == "text":
                return block.text
        return ""
