# tests/unit/llm/test_models.py - v2
"""Tests for llm/models.py - LLM interface types."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from factlens.core.models import ImageAsset
from factlens.llm.models import ImageInput, LLMResponse, Message


class TestMessage:
    def test_roles(self):
        for role in ("user", "assistant"):
            assert Message(role=role, content="test").role == role

    def test_system_role_rejected(self):
        # System prompts travel separately from the conversation.
        with pytest.raises(ValidationError):
            Message(role="system", content="test")


class TestImageInput:
    def test_from_asset(self):
        img = ImageInput.from_asset(ImageAsset(data=b"\x89PNG", media_type="image/png", name="a.png"))
        assert img.media_type == "image/png"
        assert img.source_id == "a.png"


class TestLLMResponse:
    def test_defaults(self):
        r = LLMResponse(content="hi", model="gemini-2.5-flash", provider="google")
        assert r.input_tokens == 0
        assert r.raw_response is None
