"""
Aquisição de UM frame representativo (imagem ou vídeo) em RGBA 224x224.

- Imagem: decodifica via OpenCV, redimensiona, converte para RGBA.
- Vídeo: busca o frame do meio (frame_count // 2) e lê somente ele.

A decodificação roda numa thread daemon; acquire_frame espera em fatias
de CANCEL_POLL_SEC, levanta FrameTimeout ao passar de timeout_sec e
AnalysisCancelled assim que cancel_event (threading.Event) é setado.

Dependências: OpenCV, numpy
"""

from __future__ import annotations

import mimetypes
import threading
import time
from concurrent.futures import Future, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

import cv2
import numpy as np

from .errors import (
    AnalysisCancelled,
    DecodeFailure,
    FrameTimeout,
    UnsupportedFileType,
)
from .tensor_builder import INPUT_SIZE

CANCEL_POLL_SEC = 0.05

# mimetypes depende da tabela do SO; garante os formatos mais comuns
for _ext, _mime in (
    (".webp", "image/webp"),
    (".avif", "image/avif"),
    (".mkv", "video/x-matroska"),
    (".webm", "video/webm"),
    (".mp4", "video/mp4"),
    (".mov", "video/quicktime"),
    (".avi", "video/x-msvideo"),
):
    mimetypes.add_type(_mime, _ext)


@dataclass(frozen=True)
class RasterFrame:
    """Frame RGBA (H, W, 4) uint8, row-major interleaved. Imutável."""

    pixels: np.ndarray
    source: str
    timestamp_sec: float = 0.0

    def __post_init__(self) -> None:
        if self.pixels.dtype != np.uint8 or self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise ValueError(
                f"RasterFrame espera uint8 (H, W, 4), veio "
                f"{self.pixels.dtype} {self.pixels.shape}"
            )
        self.pixels.setflags(write=False)

    @property
    def data(self) -> bytes:
        """Buffer interleaved achatado (H*W*4 bytes)."""
        return self.pixels.tobytes()


def detect_media_kind(path: Union[Path, str]) -> str:
    """Retorna 'image' ou 'video' pelo MIME type do nome do arquivo."""
    mime, _ = mimetypes.guess_type(str(path))
    if mime is not None:
        if mime.startswith("image/"):
            return "image"
        if mime.startswith("video/"):
            return "video"
    raise UnsupportedFileType(
        f"Please upload an image or a video file (recebido: {Path(path).name}, "
        f"MIME={mime})"
    )


def _to_rgba(frame: np.ndarray, size: int) -> np.ndarray:
    """BGR / BGRA / gray → RGBA size x size."""
    resized = cv2.resize(frame, (size, size), interpolation=cv2.INTER_AREA)
    if resized.ndim == 2:
        return cv2.cvtColor(resized, cv2.COLOR_GRAY2RGBA)
    if resized.shape[2] == 4:
        return cv2.cvtColor(resized, cv2.COLOR_BGRA2RGBA)
    return cv2.cvtColor(resized, cv2.COLOR_BGR2RGBA)


def _to_uint8(img: np.ndarray) -> np.ndarray:
    """PNG/TIFF 16-bit → escala por iinfo; float (TIFF 32-bit, EXR) assume [0, 1]."""
    if img.dtype == np.uint8:
        return img
    if np.issubdtype(img.dtype, np.floating):
        scaled = np.clip(np.nan_to_num(img), 0.0, 1.0) * 255.0
        return np.rint(scaled).astype(np.uint8)
    return cv2.convertScaleAbs(img, alpha=255.0 / float(np.iinfo(img.dtype).max))


def load_image_frame(
    path: Union[Path, str], size: int = INPUT_SIZE
) -> RasterFrame:
    path = Path(path)
    try:
        buf = np.fromfile(str(path), dtype=np.uint8)
    except OSError as e:
        raise DecodeFailure(f"Não foi possível ler {path}: {e}") from e

    img = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED) if buf.size else None
    if img is None:
        raise DecodeFailure(f"Falha ao decodificar imagem {path}")

    try:
        img = _to_uint8(img)
        pixels = _to_rgba(img, size)
    except (cv2.error, ValueError) as e:
        raise DecodeFailure(
            f"Falha ao converter imagem {path} ({img.dtype} {img.shape}): {e}"
        ) from e

    return RasterFrame(pixels=pixels, source=str(path))


def load_video_frame(
    path: Union[Path, str], size: int = INPUT_SIZE
) -> RasterFrame:
    """Frame do meio do vídeo (estimativa de frame único)."""
    path = Path(path)
    cap = cv2.VideoCapture(str(path))
    try:
        if not cap.isOpened():
            raise DecodeFailure(f"Não foi possível abrir o vídeo {path}")

        frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
        fps = float(cap.get(cv2.CAP_PROP_FPS) or 0.0)
        target_idx = frame_count // 2 if frame_count > 0 else 0

        if target_idx > 0:
            cap.set(cv2.CAP_PROP_POS_FRAMES, target_idx)

        ret, frame = cap.read()
        if not ret or frame is None:
            raise DecodeFailure(
                f"Falha ao ler frame {target_idx} de {path} "
                f"(frames={frame_count})"
            )
    finally:
        cap.release()

    timestamp = target_idx / fps if fps > 0 else 0.0
    return RasterFrame(
        pixels=_to_rgba(frame, size), source=str(path), timestamp_sec=timestamp
    )


def _start_decode(
    loader: Callable[..., RasterFrame], path: Union[Path, str], size: int
) -> "Future[RasterFrame]":
    """
    Roda o loader numa thread daemon: um decode travado não segura a saída
    do processo depois de FrameTimeout / AnalysisCancelled.
    """
    future: "Future[RasterFrame]" = Future()
    future.set_running_or_notify_cancel()

    def _run() -> None:
        try:
            future.set_result(loader(path, size))
        except Exception as e:
            future.set_exception(e)

    threading.Thread(target=_run, name="frame-decode", daemon=True).start()
    return future


def acquire_frame(
    path: Union[Path, str],
    *,
    size: int = INPUT_SIZE,
    timeout_sec: Optional[float] = 15.0,
    cancel_event: Optional[threading.Event] = None,
) -> RasterFrame:
    """
    Valida o tipo, decodifica com timeout e devolve o RasterFrame.

    Levanta UnsupportedFileType, DecodeFailure, FrameTimeout ou
    AnalysisCancelled.
    """
    kind = detect_media_kind(path)
    if not Path(path).exists():
        raise DecodeFailure(f"Arquivo não encontrado: {path}")

    if cancel_event is not None and cancel_event.is_set():
        raise AnalysisCancelled(f"Análise cancelada antes de decodificar {path}")

    loader = load_image_frame if kind == "image" else load_video_frame
    future = _start_decode(loader, path, size)

    deadline = None if timeout_sec is None else time.monotonic() + timeout_sec
    while True:
        wait_for = CANCEL_POLL_SEC
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise FrameTimeout(f"Decodificação de {path} excedeu {timeout_sec}s")
            wait_for = min(wait_for, remaining)

        done, _ = wait([future], timeout=wait_for)
        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelled(f"Análise cancelada durante a decodificação de {path}")
        if done:
            break

    frame = future.result()

    print(
        f"[frame] {kind} {Path(path).name} → {frame.pixels.shape[1]}x"
        f"{frame.pixels.shape[0]} RGBA (t={frame.timestamp_sec:.2f}s)"
    )
    return frame
