"""
Ferramentas para validar o detector offline sobre um conjunto rotulado.

Entrada: DataFrame com uma linha por arquivo (coluna de caminho + label
binário: 1 = manipulated, 0 = authentic). Cada arquivo passa pelo mesmo
pipeline da CLI (frame único → ONNX → calibração → veredito).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import pandas as pd

try:
    from sklearn.metrics import f1_score, recall_score, roc_auc_score
except ImportError as e:
    raise ImportError(
        "offline_eval requer scikit-learn. "
        "Instale com `pip install detect-bees[eval]` (dev-only)."
    ) from e

from .config import DetectorConfig
from .errors import AnalysisCancelled, DecodeFailure, UnsupportedFileType
from .model_loader import InferenceContext
from .run_detector import analyze_file


@dataclass
class OfflineEvalConfig:
    """
    - `threshold`: risco calibrado a partir do qual prevê manipulated
      (None → thresholds.moderate do DetectorConfig).
    - `authentic_label` / `manipulated_label`: inteiros do vetor de labels.
    """

    threshold: Optional[float] = None
    authentic_label: int = 0
    manipulated_label: int = 1


def _binary_metrics(
    y_true: np.ndarray,
    preds: np.ndarray,
    eval_config: OfflineEvalConfig,
) -> dict:
    authentic_recall = recall_score(
        y_true, preds, pos_label=eval_config.authentic_label, zero_division=0
    )
    manipulated_recall = recall_score(
        y_true, preds, pos_label=eval_config.manipulated_label, zero_division=0
    )
    f1_manipulated = f1_score(
        y_true, preds, pos_label=eval_config.manipulated_label, zero_division=0
    )
    return {
        "balanced_accuracy": float((authentic_recall + manipulated_recall) / 2.0),
        "f1_manipulated": float(f1_manipulated),
        "authentic_recall": float(authentic_recall),
        "manipulated_recall": float(manipulated_recall),
    }


def run_offline_eval(
    df_files: pd.DataFrame,
    context: InferenceContext,
    config: DetectorConfig,
    *,
    eval_config: Optional[OfflineEvalConfig] = None,
    path_column: str = "path",
    label_column: str = "label",
    rng: Optional[np.random.Generator] = None,
) -> Tuple[pd.DataFrame, dict]:
    """
    Roda o detector em cada arquivo de df_files.

    Retornos
    --------
    df_result:
        Cópia de df_files com colunas `risk`, `tier`, `percentage`,
        `pred_label`, `used_fallback` e `error` (mensagem se o arquivo
        falhou; essas linhas ficam fora das métricas).
    metrics:
        balanced_accuracy, f1_manipulated, authentic_recall,
        manipulated_recall, auc_roc, n_scored, n_failed.
    """
    if eval_config is None:
        eval_config = OfflineEvalConfig()
    threshold = (
        eval_config.threshold
        if eval_config.threshold is not None
        else config.thresholds.moderate
    )

    for col in (path_column, label_column):
        if col not in df_files.columns:
            raise KeyError(f"Coluna '{col}' não encontrada em df_files.")
    if df_files.empty:
        raise ValueError("df_files está vazio; nada para analisar.")

    rows = []
    for path in df_files[path_column]:
        try:
            result = analyze_file(path, context, config, rng=rng)
        except (UnsupportedFileType, DecodeFailure, AnalysisCancelled) as e:
            print(f"[eval] skip {path}: {e}")
            rows.append(
                {
                    "risk": np.nan,
                    "tier": None,
                    "percentage": np.nan,
                    "used_fallback": None,
                    "error": str(e),
                }
            )
            continue
        v = result.verdict
        rows.append(
            {
                "risk": v.risk,
                "tier": v.tier.value,
                "percentage": v.percentage,
                "used_fallback": result.used_fallback,
                "error": None,
            }
        )

    df_out = df_files.copy().reset_index(drop=True)
    scored = pd.DataFrame(rows)
    for col in scored.columns:
        df_out[col] = scored[col]
    df_out["pred_label"] = np.where(
        df_out["risk"] >= threshold,
        eval_config.manipulated_label,
        eval_config.authentic_label,
    )
    df_out.loc[df_out["error"].notna(), "pred_label"] = -1

    ok = df_out["error"].isna()
    if not ok.any():
        raise ValueError("Nenhum arquivo pôde ser analisado; sem métricas.")
    y_true = df_out.loc[ok, label_column].astype(int).to_numpy()
    risks = df_out.loc[ok, "risk"].astype("float64").to_numpy()
    preds = df_out.loc[ok, "pred_label"].astype(int).to_numpy()

    metrics = _binary_metrics(y_true, preds, eval_config)
    try:
        metrics["auc_roc"] = float(roc_auc_score(y_true, risks))
    except ValueError:
        metrics["auc_roc"] = 0.5
    metrics["n_scored"] = int(ok.sum())
    metrics["n_failed"] = int((~ok).sum())
    return df_out, metrics


def trivial_always_manipulated_baseline(
    y_true: np.ndarray,
    *,
    manipulated_label: int = 1,
) -> dict:
    """
    Baseline trivial: sempre prever manipulated.
    """
    preds = np.full_like(y_true, fill_value=manipulated_label)
    metrics = _binary_metrics(
        y_true, preds, OfflineEvalConfig(manipulated_label=manipulated_label)
    )
    metrics["auc_roc"] = 0.5
    return metrics
