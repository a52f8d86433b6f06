"""
Configuração do detector (modelo, calibração, limiares, frame).

Todos os valores têm default; detector_config.json é opcional e só
sobrescreve as chaves presentes. Formato:

    {
      "model": {"model_path": "...", "execution_providers": [...],
                "graph_optimization_level": "all"},
      "calibration": {"low": 0.1, "high": 0.6},
      "thresholds": {"moderate": 0.4, "high": 0.8},
      "frame": {"size": 224, "timeout_sec": 15.0}
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Type, TypeVar, Union

DEFAULT_MODEL_PATH = "models/deepfake_light.onnx"
GRAPH_OPTIMIZATION_LEVELS = ("disabled", "basic", "extended", "all")
MODEL_INPUT_SIZE = 224

T = TypeVar("T")


@dataclass
class ModelConfig:
    model_path: str = DEFAULT_MODEL_PATH
    execution_providers: List[str] = field(
        default_factory=lambda: ["CPUExecutionProvider"]
    )
    graph_optimization_level: str = "all"


@dataclass
class CalibrationConfig:
    """
    Faixa nativa de confiança do modelo esticada para [0, 1] na UI.

    O modelo é conservador: p < low vira 0, p > high vira 1.
    """

    low: float = 0.1
    high: float = 0.6


@dataclass
class RiskThresholds:
    moderate: float = 0.4
    high: float = 0.8


@dataclass
class FrameConfig:
    size: int = 224
    timeout_sec: float = 15.0


@dataclass
class DetectorConfig:
    model: ModelConfig = field(default_factory=ModelConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    thresholds: RiskThresholds = field(default_factory=RiskThresholds)
    frame: FrameConfig = field(default_factory=FrameConfig)

    def validate(self) -> None:
        """Levanta ValueError para combinações sem sentido."""
        if not self.calibration.low < self.calibration.high:
            raise ValueError(
                f"calibration.low ({self.calibration.low}) deve ser menor "
                f"que calibration.high ({self.calibration.high})"
            )
        t = self.thresholds
        if not 0.0 <= t.moderate < t.high <= 1.0:
            raise ValueError(
                f"thresholds inválidos: moderate={t.moderate}, high={t.high} "
                "(esperado 0 <= moderate < high <= 1)"
            )
        if self.frame.size != MODEL_INPUT_SIZE:
            raise ValueError(
                f"frame.size deve ser {MODEL_INPUT_SIZE} (entrada fixa do modelo "
                f"[1, 3, {MODEL_INPUT_SIZE}, {MODEL_INPUT_SIZE}]), veio {self.frame.size}"
            )
        if self.frame.timeout_sec <= 0:
            raise ValueError(
                f"frame.timeout_sec deve ser positivo, veio {self.frame.timeout_sec}"
            )
        if self.model.graph_optimization_level not in GRAPH_OPTIMIZATION_LEVELS:
            raise ValueError(
                f"graph_optimization_level desconhecido: "
                f"{self.model.graph_optimization_level!r} "
                f"(opções: {', '.join(GRAPH_OPTIMIZATION_LEVELS)})"
            )


def _section(cls: Type[T], raw: Dict[str, Any]) -> T:
    known = {f.name for f in fields(cls)}
    unknown = set(raw) - known
    if unknown:
        raise ValueError(
            f"Chaves desconhecidas em {cls.__name__}: {sorted(unknown)}"
        )
    return cls(**raw)


def load_detector_config(
    config_path: Union[Path, str, None] = None,
) -> DetectorConfig:
    """
    Carrega detector_config.json. Sem caminho, retorna os defaults.

    Levanta FileNotFoundError se o caminho foi dado e não existe.
    """
    if config_path is None:
        config = DetectorConfig()
        config.validate()
        return config

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"detector_config não encontrado em {path}")

    with path.open("r", encoding="utf-8") as fh:
        cfg = json.load(fh)

    config = DetectorConfig(
        model=_section(ModelConfig, cfg.get("model", {})),
        calibration=_section(CalibrationConfig, cfg.get("calibration", {})),
        thresholds=_section(RiskThresholds, cfg.get("thresholds", {})),
        frame=_section(FrameConfig, cfg.get("frame", {})),
    )
    config.validate()
    return config
