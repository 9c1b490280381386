"""Weighted composite AML risk score over screening matches."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

MATCH_WEIGHTS = {
    "SANCTIONS": 1.5,
    "PEP": 1.2,
}
DEFAULT_WEIGHT = 1.0

CRITICAL_SCORE = 90
HIGH_SCORE = 70
MEDIUM_SCORE = 40
# Any sanctions hit above this raw score is critical on its own.
SANCTIONS_OVERRIDE_SCORE = 85

EDD_LEVELS = ("HIGH", "CRITICAL")


@dataclass(frozen=True)
class RiskResult:
    risk_score: int
    risk_level: str

    @property
    def edd_required(self) -> bool:
        return edd_required_for(self.risk_level)


def _field(match: Any, name: str):
    if isinstance(match, Mapping):
        return match.get(name)
    return getattr(match, name, None)


def edd_required_for(risk_level: str) -> bool:
    return risk_level in EDD_LEVELS


def calculate_risk(matches: Iterable[Any]) -> RiskResult:
    rows = [(str(_field(m, "match_type") or "").upper(), float(_field(m, "match_score") or 0)) for m in matches]
    if not rows:
        return RiskResult(risk_score=0, risk_level="LOW")

    weighted = [score * MATCH_WEIGHTS.get(match_type, DEFAULT_WEIGHT) for match_type, score in rows]
    average = sum(weighted) / len(weighted)
    # Rounds half up; scores are non-negative.
    risk_score = min(100, int((average + max(weighted)) / 2 + 0.5))

    sanctions_override = any(t == "SANCTIONS" and s > SANCTIONS_OVERRIDE_SCORE for t, s in rows)
    if risk_score >= CRITICAL_SCORE or sanctions_override:
        level = "CRITICAL"
    elif risk_score >= HIGH_SCORE:
        level = "HIGH"
    elif risk_score >= MEDIUM_SCORE:
        level = "MEDIUM"
    else:
        level = "LOW"
    return RiskResult(risk_score=risk_score, risk_level=level)
