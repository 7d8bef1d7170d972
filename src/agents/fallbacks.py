# src/agents/fallbacks.py - v1
"""Placeholder results used when a rate-limited capability stays unavailable.

Every fallback is a valid instance of its stage's output type, flagged
``degraded=True``, so scoring and synthesis treat it like any other result.
"""

from __future__ import annotations

from factlens.core.models import (
    EmotionAnalysisOutput,
    SourceIntelligenceOutput,
    TextualAnalysisOutput,
)

UNAVAILABLE_NOTE = "the analysis service was overloaded and did not respond after several retries"

FALLBACK_TRUST_SCORE = 50


def textual_fallback() -> TextualAnalysisOutput:
    return TextualAnalysisOutput(
        summary=f"Textual analysis is unavailable: {UNAVAILABLE_NOTE}.",
        entities=[],
        sentiment="Neutral",
        keywords=[],
        degraded=True,
    )


def emotion_fallback() -> EmotionAnalysisOutput:
    return EmotionAnalysisOutput(
        dominant_emotion="Neutral",
        manipulation_level="Low",
        explanation=f"Emotion analysis is unavailable: {UNAVAILABLE_NOTE}.",
        degraded=True,
    )


def source_fallback() -> SourceIntelligenceOutput:
    return SourceIntelligenceOutput(
        source_validity="Unknown",
        trust_score=FALLBACK_TRUST_SCORE,
        source_validity_explanation=(
            f"Source credibility could not be verified: {UNAVAILABLE_NOTE}."
        ),
        evidence=[],
        degraded=True,
    )
