# tests/unit/agents/test_unit_fallbacks.py - v1
"""Tests for agents/fallbacks.py - degraded placeholder results."""

from __future__ import annotations

from factlens.agents.fallbacks import (
    FALLBACK_TRUST_SCORE,
    emotion_fallback,
    source_fallback,
    textual_fallback,
)


def test_textual_fallback_is_neutral_and_degraded():
    out = textual_fallback()
    assert out.sentiment == "Neutral"
    assert out.degraded
    assert "unavailable" in out.summary


def test_emotion_fallback_is_low_manipulation():
    out = emotion_fallback()
    assert (out.dominant_emotion, out.manipulation_level) == ("Neutral", "Low")
    assert out.degraded


def test_source_fallback_is_unknown_midpoint():
    out = source_fallback()
    assert out.source_validity == "Unknown"
    assert out.trust_score == FALLBACK_TRUST_SCORE == 50
    assert out.degraded


def test_fallbacks_are_fresh_instances():
    assert textual_fallback() is not textual_fallback()
