# src/llm/adapters/google_adapter.py - v2
"""Google Gemini adapter implementing BaseLLMClient.

Uses the google-generativeai SDK. Supports vision and streaming.
"""

from __future__ import annotations

import logging
import time
from typing import Any, AsyncIterator

from pydantic import BaseModel

from factlens.llm.base_client import BaseLLMClient, wrap_provider_error
from factlens.llm.models import ImageInput, LLMResponse, Message

logger = logging.getLogger(__name__)


class GoogleAdapter(BaseLLMClient):
    """Google Gemini adapter."""

    def __init__(self, model: str = "gemini-2.5-flash", api_key: str = "", **kwargs: Any):
        self._model = model
        self._api_key = api_key

    def _generative_model(self, system: str | None) -> Any:
        try:
            import google.generativeai as genai
        except ImportError as e:
            raise ImportError(
                "google-generativeai package required: pip install factlens[google]"
            ) from e

        genai.configure(api_key=self._api_key)
        return genai.GenerativeModel(self._model, system_instruction=system)

    @staticmethod
    def _to_contents(messages: list[Message]) -> list[dict[str, Any]]:
        return [
            {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
            for m in messages
        ]

    @staticmethod
    def _generation_config(
        max_tokens: int, temperature: float | None, response_format: type[BaseModel] | None
    ) -> dict[str, Any]:
        config: dict[str, Any] = {"max_output_tokens": max_tokens}
        if temperature is not None:
            config["temperature"] = temperature
        if response_format is not None:
            config["response_mime_type"] = "application/json"
        return config

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        model = self._generative_model(system)
        t0 = time.monotonic()
        try:
            resp = await model.generate_content_async(
                self._to_contents(messages),
                generation_config=self._generation_config(max_tokens, temperature, response_format),
            )
        except Exception as exc:
            raise wrap_provider_error(exc, "google") from exc
        return self._to_response(resp, t0)

    async def complete_with_vision(
        self,
        messages: list[Message],
        images: list[ImageInput],
        system: str | None = None,
        max_tokens: int = 4096,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        model = self._generative_model(system)

        parts: list[dict[str, Any]] = [
            {"inline_data": {"mime_type": img.media_type, "data": img.data}} for img in images
        ]
        parts.extend({"text": m.content} for m in messages)

        t0 = time.monotonic()
        try:
            resp = await model.generate_content_async(
                [{"role": "user", "parts": parts}],
                generation_config=self._generation_config(max_tokens, None, response_format),
            )
        except Exception as exc:
            raise wrap_provider_error(exc, "google") from exc
        return self._to_response(resp, t0)

    async def stream(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
    ) -> AsyncIterator[str]:
        model = self._generative_model(system)
        try:
            resp = await model.generate_content_async(
                self._to_contents(messages),
                generation_config=self._generation_config(max_tokens, temperature, None),
                stream=True,
            )
            async for chunk in resp:
                text = _chunk_text(chunk)
                if text:
                    yield text
        except Exception as exc:
            raise wrap_provider_error(exc, "google") from exc

    def _to_response(self, resp: Any, t0: float) -> LLMResponse:
        usage = getattr(resp, "usage_metadata", None)
        return LLMResponse(
            content=_chunk_text(resp),
            input_tokens=getattr(usage, "prompt_token_count", 0) if usage else 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) if usage else 0,
            model=self._model,
            provider="google",
            latency_ms=int((time.monotonic() - t0) * 1000),
            raw_response=resp,
        )

    @property
    def supports_vision(self) -> bool:
        return True

    @property
    def provider_name(self) -> str:
        return "google"


def _chunk_text(chunk: Any) -> str:
    """``.text`` raises ValueError when a candidate has no text parts."""
    try:
        return chunk.text or ""
    except ValueError:
        logger.debug("Gemini response chunk carried no text parts")
        return ""
