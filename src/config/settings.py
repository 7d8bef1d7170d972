# src/config/settings.py - v3
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from factlens.core.errors import ConfigurationError

KNOWN_PROVIDERS: tuple[str, ...] = ("google", "anthropic")


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === LLM PROVIDERS ===
    llm_default_provider: str = "google"
    llm_default_model: str = "gemini-2.5-flash"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 4096

    google_api_key: str = ""
    anthropic_api_key: str = ""

    # Per-component LLM assignment ("provider:model"), highest priority
    llm_textual_analysis: str = ""
    llm_emotion_analysis: str = ""
    llm_visual_analysis: str = ""
    llm_source_intelligence: str = ""
    llm_final_synthesis: str = ""
    llm_follow_up: str = ""

    # === Ingestion ===
    ingestion_timeout_s: float = 20.0
    ingestion_user_agent: str = (
        "Mozilla/5.0 (compatible; factlens/0.1; +https://example.invalid/factlens)"
    )
    ingestion_max_chars: int = 100_000
    analysis_max_chars: int = 15_000

    # === Retry (transient agent failures) ===
    retry_max_attempts: int = 3
    retry_base_delay_s: float = 2.0
    retry_backoff_factor: float = 2.0
    retry_max_total_delay_s: float = 14.0

    # === Rate limiting (agent adapter layer) ===
    rate_limit_enabled: bool = True
    rate_limit_per_s: float = 1.0
    rate_limit_burst: int = 1

    # === Pipeline ===
    video_frame_count: int = 5
    misinformation_threshold: int = 40

    # === Storage ===
    store_backend: Literal["json", "sqlite", "memory"] = "json"
    store_root: Path = Path("~/.factlens")

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("retry_max_attempts", "video_frame_count")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("misinformation_threshold")
    @classmethod
    def validate_threshold(cls, v: int) -> int:
        if not 0 <= v <= 100:
            raise ValueError("misinformation_threshold must be within 0-100")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Cross-field consistency rules."""
        errors: list[str] = []

        # Worst-case retry wait: no sleep follows the final attempt.
        worst_case = sum(
            self.retry_base_delay_s * self.retry_backoff_factor ** (a - 1)
            for a in range(1, self.retry_max_attempts)
        )
        if worst_case > self.retry_max_total_delay_s:
            errors.append(
                f"Retry schedule waits up to {worst_case:.1f}s, "
                f"above RETRY_MAX_TOTAL_DELAY_S={self.retry_max_total_delay_s:.1f}"
            )

        if self.rate_limit_enabled and (self.rate_limit_per_s <= 0 or self.rate_limit_burst < 1):
            errors.append("RATE_LIMIT_PER_S must be > 0 and RATE_LIMIT_BURST >= 1")

        if self.llm_default_provider not in KNOWN_PROVIDERS:
            errors.append(f"Unknown LLM_DEFAULT_PROVIDER: {self.llm_default_provider!r}")

        for component, value in self.llm_overrides.items():
            provider = value.split(":", 1)[0].strip()
            if ":" not in value or provider not in KNOWN_PROVIDERS:
                errors.append(
                    f"LLM_{component.upper()} must be 'provider:model' with a known provider, "
                    f"got {value!r}"
                )

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def llm_overrides(self) -> dict[str, str]:
        """Non-empty per-component LLM overrides."""
        components = (
            "textual_analysis",
            "emotion_analysis",
            "visual_analysis",
            "source_intelligence",
            "final_synthesis",
            "follow_up",
        )
        return {
            c: getattr(self, f"llm_{c}")
            for c in components
            if getattr(self, f"llm_{c}")
        }

    @property
    def store_path(self) -> Path:
        return Path(self.store_root).expanduser()


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
