# tests/unit/config/test_settings.py - v3
"""Tests for config/settings.py - typed Settings and validation rules."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from factlens.config.settings import ConfigurationError, Settings, load_settings
from factlens.core.errors import FactLensError


class TestSettingsDefaults:
    def test_llm_defaults(self):
        s = Settings(_env_file=None)
        assert s.llm_default_provider == "google"
        assert s.llm_default_model == "gemini-2.5-flash"
        assert s.llm_overrides == {}

    def test_pipeline_defaults(self):
        s = Settings(_env_file=None)
        assert s.video_frame_count == 5
        assert s.misinformation_threshold == 40
        assert s.analysis_max_chars == 15_000

    def test_retry_defaults(self):
        s = Settings(_env_file=None)
        assert (s.retry_max_attempts, s.retry_base_delay_s, s.retry_backoff_factor) == (3, 2.0, 2.0)

    def test_store_path_expands_user(self):
        s = Settings(_env_file=None, store_root=Path("~/somewhere"))
        assert "~" not in str(s.store_path)


class TestSettingsValidation:
    def test_retry_schedule_over_budget(self):
        # 2 + 4 + 8 = 14 is the limit; a fifth attempt adds 16s.
        with pytest.raises(ConfigurationError, match="Retry schedule"):
            Settings(_env_file=None, retry_max_attempts=5)

    def test_retry_schedule_at_budget(self):
        assert Settings(_env_file=None, retry_max_attempts=4).retry_max_attempts == 4

    def test_unknown_default_provider(self):
        with pytest.raises(ConfigurationError, match="LLM_DEFAULT_PROVIDER"):
            Settings(_env_file=None, llm_default_provider="nope")

    def test_bad_override_format(self):
        with pytest.raises(ConfigurationError, match="LLM_TEXTUAL_ANALYSIS"):
            Settings(_env_file=None, llm_textual_analysis="gemini-2.5-pro")

    def test_configuration_error_is_factlens_error(self):
        with pytest.raises(FactLensError):
            Settings(_env_file=None, llm_default_provider="nope")

    def test_bad_rate_limit(self):
        with pytest.raises(ConfigurationError, match="RATE_LIMIT"):
            Settings(_env_file=None, rate_limit_per_s=0)

    def test_rate_limit_ignored_when_disabled(self):
        s = Settings(_env_file=None, rate_limit_enabled=False, rate_limit_per_s=0)
        assert not s.rate_limit_enabled

    def test_threshold_range(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, misinformation_threshold=101)

    def test_frame_count_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, video_frame_count=0)


class TestLoadSettings:
    def test_overrides(self):
        s = load_settings(_env_file=None, store_backend="memory", log_format="json")
        assert s.store_backend == "memory"
        assert s.log_format == "json"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("MISINFORMATION_THRESHOLD", "25")
        assert load_settings(_env_file=None).misinformation_threshold == 25
