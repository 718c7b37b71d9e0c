"""Shared risk scoring used by every agent's simulate path."""

from .models import RiskLevel

_CONFIDENCE_PENALTY = {
    RiskLevel.LOW: 0.0,
    RiskLevel.MEDIUM: 0.1,
    RiskLevel.HIGH: 0.2,
    RiskLevel.CRITICAL: 0.4,
}


def risk_score(value_at_risk: float, complexity: float, price_impact: float = 0.0) -> float:
    """Return the 0-100 score behind :func:`calculate_risk`.

    ``price_impact`` is a fraction (0.05 means 5%).
    """

    if value_at_risk > 10_000:
        value_points = 40
    elif value_at_risk > 1_000:
        value_points = 20
    elif value_at_risk > 100:
        value_points = 10
    else:
        value_points = 0

    return value_points + min(complexity * 10, 30) + min(price_impact * 100, 30)


def calculate_risk(value_at_risk: float, complexity: float, price_impact: float = 0.0) -> RiskLevel:
    score = risk_score(value_at_risk, complexity, price_impact)
    if score >= 70:
        return RiskLevel.CRITICAL
    if score >= 50:
        return RiskLevel.HIGH
    if score >= 25:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def apply_risk_penalty(confidence: float, risk: RiskLevel, floor: float = 0.1) -> float:
    """Lower a confidence figure according to the risk tier, never below ``floor``."""

    return max(floor, confidence - _CONFIDENCE_PENALTY[risk])
