# src/llm/client_factory.py - v3
"""Factory: instantiate LLM clients from provider names.

Per-component clients are resolved through the llm/config.py cascade.
"""

from __future__ import annotations

import importlib
import logging

from factlens.config.settings import Settings
from factlens.llm.base_client import BaseLLMClient
from factlens.llm.config import LLM_COMPONENTS, resolve_llm

logger = logging.getLogger(__name__)

# Registry of provider name -> adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "google": "factlens.llm.adapters.google_adapter.GoogleAdapter",
    "anthropic": "factlens.llm.adapters.anthropic_adapter.AnthropicAdapter",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_llm_client(
    provider: str,
    model: str,
    settings: Settings | None = None,
    **kwargs: object,
) -> BaseLLMClient:
    """Instantiate the correct adapter from provider name.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])

    init_kwargs = dict(kwargs)
    init_kwargs["model"] = model
    if settings is not None:
        if provider == "google":
            init_kwargs.setdefault("api_key", settings.google_api_key)
        elif provider == "anthropic":
            init_kwargs.setdefault("api_key", settings.anthropic_api_key)

    logger.debug("Creating LLM client: provider=%s, model=%s", provider, model)
    return adapter_cls(**init_kwargs)


def create_component_clients(settings: Settings) -> dict[str, BaseLLMClient]:
    """One client per LLM-backed component; components sharing a
    provider:model share the client instance."""
    by_key: dict[str, BaseLLMClient] = {}
    clients: dict[str, BaseLLMClient] = {}
    for component in LLM_COMPONENTS:
        assignment = resolve_llm(component, settings)
        if assignment.key not in by_key:
            by_key[assignment.key] = create_llm_client(
                assignment.provider, assignment.model, settings
            )
        clients[component] = by_key[assignment.key]
    return clients


def register_provider(name: str, class_path: str) -> None:
    """Register a custom provider adapter."""
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered LLM provider: %s -> %s", name, class_path)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
