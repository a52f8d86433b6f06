"""
Orquestrador e CLI do detector.

Pipeline: arquivo → frame RGBA 224x224 → tensor [1,3,224,224] → ONNX
(ou fallback) → calibração → veredito Low/Moderate/High.

O InferenceContext é criado uma vez em main() e passado para cada
análise; os arquivos são processados em sequência.
"""

from __future__ import annotations

import argparse
import json
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import DEFAULT_MODEL_PATH, DetectorConfig, load_detector_config
from .errors import AnalysisCancelled, DecodeFailure, UnsupportedFileType
from .frame_acquisition import RasterFrame, acquire_frame, detect_media_kind
from .model_loader import (
    InferenceContext,
    ModelOutput,
    SyntheticScore,
    load_inference_context,
    run_model,
)
from .risk_classifier import RiskVerdict, classify_risk
from .score_calibrator import calibrate
from .tensor_builder import preprocess_frame


@dataclass(frozen=True)
class AnalysisResult:
    path: str
    media_kind: str
    frame_timestamp_sec: float
    used_fallback: bool
    verdict: RiskVerdict
    status: str

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "media_kind": self.media_kind,
            "frame_timestamp_sec": self.frame_timestamp_sec,
            "used_fallback": self.used_fallback,
            "status": self.status,
            **self.verdict.to_dict(),
        }


def analyze_frame(
    frame: RasterFrame,
    context: InferenceContext,
    config: DetectorConfig,
    *,
    rng: Optional[np.random.Generator] = None,
    debug: bool = False,
) -> Tuple[RiskVerdict, ModelOutput]:
    """
    Roda tensor → modelo → calibração → classificação.

    Retorna (verdict, output); output indica se o score veio do fallback.
    """
    tensor = preprocess_frame(frame)
    if debug:
        print(
            f"[debug] tensor shape={tensor.shape} "
            f"min={tensor.min():.4f} max={tensor.max():.4f} "
            f"mean={tensor.mean():.4f}"
        )

    output = run_model(tensor, context, rng=rng)
    if debug:
        print(f"[debug] model output: {output}")

    risk = calibrate(output, config.calibration)
    return classify_risk(risk, config.thresholds), output


def analyze_file(
    path: Union[Path, str],
    context: InferenceContext,
    config: DetectorConfig,
    *,
    rng: Optional[np.random.Generator] = None,
    cancel_event: Optional[threading.Event] = None,
    debug: bool = False,
) -> AnalysisResult:
    """
    Analisa uma imagem ou vídeo (frame único do meio).

    Propaga UnsupportedFileType, DecodeFailure, FrameTimeout e
    AnalysisCancelled; nenhuma é re-tentada.
    """
    kind = detect_media_kind(path)
    frame = acquire_frame(
        path,
        size=config.frame.size,
        timeout_sec=config.frame.timeout_sec,
        cancel_event=cancel_event,
    )

    print(f"[analysis] Analyzing {'image' if kind == 'image' else 'video frame'}…")
    verdict, output = analyze_frame(frame, context, config, rng=rng, debug=debug)

    status = (
        "Analysis complete."
        if kind == "image"
        else "Analysis complete (single-frame estimate)."
    )
    return AnalysisResult(
        path=str(path),
        media_kind=kind,
        frame_timestamp_sec=frame.timestamp_sec,
        used_fallback=isinstance(output, SyntheticScore),
        verdict=verdict,
        status=status,
    )


def _print_result(result: AnalysisResult) -> None:
    v = result.verdict
    print(f"[analysis] {result.status}")
    print(f"\n=== {Path(result.path).name} ===")
    print(f"  score       : {v.percentage}%")
    print(f"  tier        : {v.tier.value}")
    print(f"  label       : {v.label}")
    print(f"  insight     : {v.explanation}")
    if result.media_kind == "video":
        print(f"  frame at    : {result.frame_timestamp_sec:.2f}s")
    if result.used_fallback:
        print("  note        : mock score (model unavailable)")


def run_detector(
    paths: Sequence[Union[Path, str]],
    config: DetectorConfig,
    *,
    seed: Optional[int] = None,
    as_json: bool = False,
    debug: bool = False,
) -> int:
    """Analisa cada arquivo; retorna exit code (1 se algum falhou)."""
    context = load_inference_context(config.model)
    print(f"[init] {context.status_message}")
    print(
        f"[init] Calibration: [{config.calibration.low}, {config.calibration.high}] → [0, 1]"
    )
    print(
        f"[init] Thresholds: moderate>={config.thresholds.moderate} "
        f"high>={config.thresholds.high}"
    )

    rng = np.random.default_rng(seed)
    failed = 0

    for path in paths:
        try:
            result = analyze_file(path, context, config, rng=rng, debug=debug)
        except (UnsupportedFileType, DecodeFailure, AnalysisCancelled) as e:
            failed += 1
            print(f"[error] {path}: {e}")
            continue

        if as_json:
            print(json.dumps(result.to_dict(), ensure_ascii=False))
        else:
            _print_result(result)

    return 1 if failed else 0


# ── CLI entry point ──────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="DETECT-BEES single-frame deepfake risk scorer",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "files", nargs="+",
        help="Image or video files to analyze",
    )
    parser.add_argument(
        "--model-dir", default="models",
        help="Directory containing deepfake_light.onnx and detector_config.json",
    )
    parser.add_argument(
        "--model", default=None,
        help="Path to the .onnx classifier (default: {model-dir}/deepfake_light.onnx)",
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to detector_config.json (default: {model-dir}/detector_config.json if present)",
    )
    parser.add_argument(
        "--providers", default=None,
        help="Comma-separated onnxruntime execution providers, in priority order",
    )
    parser.add_argument(
        "--graph-opt", default=None,
        choices=["disabled", "basic", "extended", "all"],
        help="Graph optimization level (default: from config, 'all')",
    )
    parser.add_argument(
        "--timeout", type=float, default=None,
        help="Frame decode timeout in seconds (default: from config, 15)",
    )
    parser.add_argument(
        "--seed", type=int, default=None,
        help="Seed for mock scores when the model is unavailable",
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Print one JSON object per file",
    )
    parser.add_argument(
        "--debug", action="store_true",
        help="Print tensor stats and raw model output",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> DetectorConfig:
    model_dir = Path(args.model_dir)
    config_path: Optional[Path] = Path(args.config) if args.config else None
    if config_path is None and (model_dir / "detector_config.json").exists():
        config_path = model_dir / "detector_config.json"

    config = load_detector_config(config_path)

    if args.model:
        config.model.model_path = args.model
    elif config.model.model_path == DEFAULT_MODEL_PATH:
        config.model.model_path = str(model_dir / "deepfake_light.onnx")
    if args.providers:
        config.model.execution_providers = [
            p.strip() for p in args.providers.split(",") if p.strip()
        ]
    if args.graph_opt:
        config.model.graph_optimization_level = args.graph_opt
    if args.timeout is not None:
        config.frame.timeout_sec = args.timeout

    config.validate()
    return config


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    config = config_from_args(args)
    sys.exit(
        run_detector(
            args.files,
            config,
            seed=args.seed,
            as_json=args.json,
            debug=args.debug,
        )
    )


if __name__ == "__main__":
    main()
