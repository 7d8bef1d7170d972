# src/llm/base_client.py - v2
"""Abstract LLM client interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator

from pydantic import BaseModel

from factlens.core.errors import AgentError
from factlens.llm.models import ImageInput, LLMResponse, Message
from factlens.llm.retry import classify_error


class BaseLLMClient(ABC):
    """Unified interface for all LLM providers.

    Implementations must raise AgentError (tagged with an ErrorKind) for
    provider failures; see ``wrap_provider_error``.
    """

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        """Text completion."""

    @abstractmethod
    async def complete_with_vision(
        self,
        messages: list[Message],
        images: list[ImageInput],
        system: str | None = None,
        max_tokens: int = 4096,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        """Vision-enabled completion (images + text)."""

    @abstractmethod
    def stream(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
    ) -> AsyncIterator[str]:
        """Streamed completion yielding text chunks in generation order."""

    @property
    @abstractmethod
    def supports_vision(self) -> bool:
        """Whether this provider/model supports image inputs."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (google, anthropic)."""


def wrap_provider_error(error: Exception, provider: str) -> AgentError:
    """Tag a raw SDK exception with its ErrorKind at the adapter boundary."""
    if isinstance(error, AgentError):
        return error
    return AgentError(str(error) or type(error).__name__, kind=classify_error(error), agent=provider)
