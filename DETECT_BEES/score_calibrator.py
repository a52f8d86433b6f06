"""
Calibração do score bruto do modelo para risco em [0, 1].

- TwoClassLogits: softmax estável → p(manipulated) → recalibração
- ScalarProbability: p direto → recalibração
- SyntheticScore: já em escala de UI, só clamp
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

from .config import CalibrationConfig
from .model_loader import (
    ModelOutput,
    ScalarProbability,
    SyntheticScore,
    TwoClassLogits,
)


def _clamp01(x: float) -> float:
    if math.isnan(x):
        return 0.0
    return min(max(x, 0.0), 1.0)


def softmax_manipulated(l0: float, l1: float) -> float:
    """Softmax estável (subtrai o máximo) e devolve a prob. da classe 0."""
    logits = np.array([l0, l1], dtype=np.float64)
    exp_logits = np.exp(logits - np.max(logits))
    return float(exp_logits[0] / exp_logits.sum())


def recalibrate_risk(p: float, low: float = 0.1, high: float = 0.6) -> float:
    """Estica [low, high] para [0, 1] com clamp nas pontas."""
    return _clamp01((p - low) / (high - low))


def calibrate(
    output: ModelOutput,
    calibration: Optional[CalibrationConfig] = None,
) -> float:
    cal = calibration or CalibrationConfig()

    if isinstance(output, TwoClassLogits):
        p = softmax_manipulated(output.manipulated, output.authentic)
        return recalibrate_risk(p, cal.low, cal.high)
    if isinstance(output, ScalarProbability):
        return recalibrate_risk(output.p, cal.low, cal.high)
    if isinstance(output, SyntheticScore):
        return _clamp01(output.risk)
    raise TypeError(f"ModelOutput desconhecido: {type(output).__name__}")
