"""
Carregamento do classificador ONNX e adaptador de inferência.

A sessão é criada UMA vez na inicialização e guardada num InferenceContext
passado explicitamente para cada análise. Se a criação falhar (modelo
ausente, onnxruntime não instalado, arquivo inválido) o contexto fica em
modo fallback até o fim do processo: scores sintéticos para demo/offline.
Sem retry por requisição.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import numpy as np

try:
    import onnxruntime as ort

    HAS_ONNX = True
except ImportError:
    ort = None  # type: ignore[assignment]
    HAS_ONNX = False

from .config import ModelConfig
from .errors import MalformedModelOutput, ModelUnavailable

STATUS_LOADED = "Model loaded · Real-time deepfake scoring active."
STATUS_FALLBACK = "Model not found · Using mock scores for demo."
DEFAULT_INPUT_NAME = "input"

_OPT_LEVEL_NAMES = {
    "disabled": "ORT_DISABLE_ALL",
    "basic": "ORT_ENABLE_BASIC",
    "extended": "ORT_ENABLE_EXTENDED",
    "all": "ORT_ENABLE_ALL",
}


# ── ModelOutput (variante explícita, sem inspecionar tamanho depois) ─────────


@dataclass(frozen=True)
class TwoClassLogits:
    """Logits não normalizados: índice 0 = manipulated, índice 1 = authentic."""

    manipulated: float
    authentic: float


@dataclass(frozen=True)
class ScalarProbability:
    """Modelo de 1 saída: escalar já em escala de probabilidade."""

    p: float


@dataclass(frozen=True)
class SyntheticScore:
    """
    Score do gerador fallback. Já está na escala da UI: o calibrador
    repassa sem recalibrar.
    """

    risk: float


ModelOutput = Union[TwoClassLogits, ScalarProbability, SyntheticScore]


def parse_model_output(raw: Union[Sequence[float], np.ndarray]) -> ModelOutput:
    """Mapeia o array bruto da primeira saída para a variante correspondente."""
    values = np.asarray(raw, dtype=np.float64).reshape(-1)
    if values.shape[0] == 2:
        return TwoClassLogits(
            manipulated=float(values[0]), authentic=float(values[1])
        )
    if values.shape[0] == 1:
        return ScalarProbability(p=float(values[0]))
    raise MalformedModelOutput(int(values.shape[0]))


# ── Inference context ────────────────────────────────────────────────────────


@dataclass
class InferenceContext:
    """Estado de inferência do processo. Somente leitura após a criação."""

    session: Optional[Any]
    input_name: str = DEFAULT_INPUT_NAME
    status_message: str = STATUS_FALLBACK
    model_path: Optional[str] = None

    @property
    def model_loaded(self) -> bool:
        return self.session is not None

    @classmethod
    def fallback(cls, model_path: Optional[str] = None) -> "InferenceContext":
        return cls(
            session=None,
            input_name=DEFAULT_INPUT_NAME,
            status_message=STATUS_FALLBACK,
            model_path=model_path,
        )


def resolve_providers(requested: Sequence[str]) -> List[str]:
    """
    Mantém a ordem pedida, descarta providers indisponíveis nesta build do
    onnxruntime e garante CPUExecutionProvider no final.
    """
    available = set(ort.get_available_providers()) if HAS_ONNX else set()
    wanted = [p for p in requested if p in available]
    if "CPUExecutionProvider" not in wanted:
        wanted.append("CPUExecutionProvider")
    return wanted


def create_session(config: ModelConfig) -> Any:
    """
    Cria a onnxruntime.InferenceSession. Qualquer falha vira ModelUnavailable.
    """
    if not HAS_ONNX:
        raise ModelUnavailable(
            "onnxruntime não está instalado. "
            "Instale com `pip install onnxruntime`."
        )

    path = Path(config.model_path)
    if not path.exists():
        raise ModelUnavailable(f"Modelo não encontrado em {path}")
    if path.suffix != ".onnx":
        raise ModelUnavailable(f"Formato esperado: .onnx. Recebido: {path.suffix}")

    opt_name = _OPT_LEVEL_NAMES.get(config.graph_optimization_level)
    if opt_name is None:
        raise ModelUnavailable(
            f"graph_optimization_level desconhecido: "
            f"{config.graph_optimization_level!r}"
        )

    options = ort.SessionOptions()
    options.graph_optimization_level = getattr(ort.GraphOptimizationLevel, opt_name)
    providers = resolve_providers(config.execution_providers)

    try:
        session = ort.InferenceSession(
            str(path), sess_options=options, providers=providers
        )
    except Exception as e:
        raise ModelUnavailable(f"Falha ao criar sessão ONNX ({path}): {e}") from e

    print(f"[model] Loaded ONNX: {path} (providers={session.get_providers()})")
    return session


def load_inference_context(config: ModelConfig) -> InferenceContext:
    """
    Inicializa o contexto uma única vez. Nunca levanta: falhas degradam
    para o modo fallback permanentemente.
    """
    print("[model] Loading ONNX model…")
    try:
        session = create_session(config)
    except ModelUnavailable as e:
        print(f"[model] WARNING: model load failed: {e}")
        return InferenceContext.fallback(model_path=config.model_path)

    inputs = session.get_inputs()
    input_name = inputs[0].name if inputs else DEFAULT_INPUT_NAME
    return InferenceContext(
        session=session,
        input_name=input_name,
        status_message=STATUS_LOADED,
        model_path=config.model_path,
    )


# ── Synthetic fallback ───────────────────────────────────────────────────────


def synthetic_risk_score(rng: Optional[np.random.Generator] = None) -> float:
    """
    Score pseudo-aleatório com distribuição fixa:
    70% em [0, 0.3), 20% em [0.3, 0.7), 10% em [0.7, 1.0).
    """
    if rng is None:
        rng = np.random.default_rng()
    r = rng.random()
    if r < 0.7:
        return float(rng.random() * 0.3)
    if r < 0.9:
        return float(0.3 + rng.random() * 0.4)
    return float(0.7 + rng.random() * 0.3)


# ── Prediction ───────────────────────────────────────────────────────────────


def run_model(
    tensor: np.ndarray,
    context: InferenceContext,
    *,
    rng: Optional[np.random.Generator] = None,
) -> ModelOutput:
    """
    Roda a sessão sobre o tensor [1, 3, H, W]; sem sessão, usa o fallback.

    Saída com tamanho inesperado não derruba o pipeline: cai no fallback.
    """
    if not context.model_loaded:
        return SyntheticScore(risk=synthetic_risk_score(rng))

    if tensor.dtype != np.float32:
        tensor = tensor.astype(np.float32)

    outputs = context.session.run(None, {context.input_name: tensor})
    try:
        return parse_model_output(outputs[0])
    except MalformedModelOutput as e:
        print(f"[model] WARNING: {e} · using mock score")
        return SyntheticScore(risk=synthetic_risk_score(rng))
