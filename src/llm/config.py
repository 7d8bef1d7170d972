# src/llm/config.py - v2
"""Per-component LLM routing with cascade resolution.

Resolution order:
  1. Per-component env var (LLM_TEXTUAL_ANALYSIS=anthropic:claude-sonnet-4-20250514)
  2. Default provider + model (LLM_DEFAULT_PROVIDER + LLM_DEFAULT_MODEL)
  3. Hardcoded fallback (google:gemini-2.5-flash)
"""

from __future__ import annotations

from dataclasses import dataclass

from factlens.config.settings import Settings

_FALLBACK_PROVIDER = "google"
_FALLBACK_MODEL = "gemini-2.5-flash"

# LLM-backed capabilities. Content ingestion is HTTP-backed and not listed.
LLM_COMPONENTS: tuple[str, ...] = (
    "textual_analysis",
    "emotion_analysis",
    "visual_analysis",
    "source_intelligence",
    "final_synthesis",
    "follow_up",
)


@dataclass(frozen=True)
class LLMAssignment:
    """Resolved LLM provider:model for a component."""

    provider: str
    model: str
    source: str  # "component", "default", or "fallback"

    @property
    def key(self) -> str:
        return f"{self.provider}:{self.model}"


def _parse_assignment(value: str) -> tuple[str, str] | None:
    """Parse 'provider:model' string. Returns None if empty."""
    if not value or ":" not in value:
        return None
    provider, model = value.split(":", 1)
    return (provider.strip(), model.strip())


def resolve_llm(component: str, settings: Settings) -> LLMAssignment:
    """Resolve LLM assignment for a component using the cascade."""
    parsed = _parse_assignment(getattr(settings, f"llm_{component}", ""))
    if parsed:
        return LLMAssignment(provider=parsed[0], model=parsed[1], source="component")

    if settings.llm_default_provider and settings.llm_default_model:
        return LLMAssignment(
            provider=settings.llm_default_provider,
            model=settings.llm_default_model,
            source="default",
        )

    return LLMAssignment(
        provider=_FALLBACK_PROVIDER,
        model=_FALLBACK_MODEL,
        source="fallback",
    )


def resolve_all(settings: Settings) -> dict[str, LLMAssignment]:
    """Resolve LLM assignments for every LLM-backed component."""
    return {comp: resolve_llm(comp, settings) for comp in LLM_COMPONENTS}
