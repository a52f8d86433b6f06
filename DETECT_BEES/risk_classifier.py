"""
Risco calibrado → veredito em três níveis (Low / Moderate / High).

Limiares inclusivos no limite inferior: risk >= 0.8 → High,
0.4 <= risk < 0.8 → Moderate, risk < 0.4 → Low.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from .config import RiskThresholds


class RiskTier(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


TIER_TEXT: Dict[RiskTier, tuple] = {
    RiskTier.HIGH: (
        "Likely manipulated",
        "The model is highly confident this content matches patterns of "
        "AI-generated or manipulated faces. Treat as suspicious and verify "
        "via trusted channels.",
    ),
    RiskTier.MODERATE: (
        "Needs review",
        "The model detects some anomalies that may indicate manipulation. "
        "Review carefully and cross-check this media before using it for "
        "important decisions.",
    ),
    RiskTier.LOW: (
        "Likely authentic",
        "The model does not detect strong signs of deepfake manipulation. "
        "Still, no detector is perfect, so stay cautious with high-impact "
        "or sensitive content.",
    ),
}


@dataclass(frozen=True)
class RiskVerdict:
    tier: RiskTier
    percentage: int
    label: str
    explanation: str
    risk: float

    def to_dict(self) -> dict:
        return {
            "tier": self.tier.value,
            "percentage": self.percentage,
            "label": self.label,
            "explanation": self.explanation,
            "risk": self.risk,
        }


def risk_percentage(risk: float) -> int:
    """round(risk * 100) com meio para cima, em 0–100."""
    return min(max(int(math.floor(risk * 100 + 0.5)), 0), 100)


def classify_risk(
    risk: Optional[float],
    thresholds: Optional[RiskThresholds] = None,
) -> RiskVerdict:
    t = thresholds or RiskThresholds()
    if risk is None or math.isnan(risk):
        risk = 0.0

    if risk >= t.high:
        tier = RiskTier.HIGH
    elif risk >= t.moderate:
        tier = RiskTier.MODERATE
    else:
        tier = RiskTier.LOW

    label, explanation = TIER_TEXT[tier]
    return RiskVerdict(
        tier=tier,
        percentage=risk_percentage(risk),
        label=label,
        explanation=explanation,
        risk=float(risk),
    )
