# src/scoring/risk.py - v1
"""Risk scoring over a ResultAggregate.

Combines three weighted signals (source trust 0.6, emotional manipulation
0.2, visual manipulation 0.2), renormalizes by the weights actually
present, then applies a flat +10 for negative sentiment. The result must
match the reference numbers exactly, including half-up rounding.
"""

from __future__ import annotations

import math

from factlens.core.models import ResultAggregate, RiskAssessment

SOURCE_WEIGHT = 0.6
EMOTION_WEIGHT = 0.2
VISUAL_WEIGHT = 0.2
NEGATIVE_SENTIMENT_PENALTY = 10

SEVERITY_RISK: dict[str, int] = {"High": 100, "Medium": 60, "Low": 0}

NOT_ENOUGH_DATA = "Not enough data for risk assessment."
NO_RISK_FACTORS = "No significant risk factors detected."


def score(aggregate: ResultAggregate) -> RiskAssessment:
    """Compute the 0-100 risk score and its contributing factors."""
    if not aggregate.has_signals:
        return RiskAssessment(score=0, factors=[NOT_ENOUGH_DATA])

    total = 0.0
    weights = 0.0
    factors: list[str] = []

    if aggregate.source is not None:
        risk = 100 - aggregate.source.trust_score
        total += risk * SOURCE_WEIGHT
        weights += SOURCE_WEIGHT
        factors.append(_source_factor(risk))

    if aggregate.emotion is not None:
        level = aggregate.emotion.manipulation_level
        total += SEVERITY_RISK[level] * EMOTION_WEIGHT
        weights += EMOTION_WEIGHT
        if level != "Low":
            factors.append(f"Detected {level.lower()} emotional manipulation.")

    if aggregate.visual is not None and aggregate.visual.visual_insights:
        flag = aggregate.visual.primary.manipulation_flag
        total += SEVERITY_RISK[flag] * VISUAL_WEIGHT
        weights += VISUAL_WEIGHT
        if flag != "Low":
            factors.append(f"Image manipulation risk is {flag.lower()}.")

    if 0 < weights < 1:
        total /= weights

    if aggregate.textual is not None and aggregate.textual.sentiment == "Negative":
        total = min(100.0, total + NEGATIVE_SENTIMENT_PENALTY)
        # A negative-sentiment-only input scores 10 with no factor text.
        if factors:
            factors.append("Content has a negative sentiment.")

    final = max(0, min(100, _round_half_up(total)))
    if not factors:
        factors.append(NO_RISK_FACTORS)

    return RiskAssessment(score=final, factors=factors)


def _source_factor(risk: float) -> str:
    if risk > 60:
        return "Source credibility is low."
    if risk > 20:
        return "Source credibility is moderate."
    return "Source credibility is high."


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
