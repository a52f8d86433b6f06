"""
Pytest fixtures: imagens e vídeos sintéticos gravados com OpenCV em tmp_path
e uma sessão falsa com a mesma interface usada da onnxruntime.InferenceSession.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Callable, List, Optional, Union

import cv2
import numpy as np
import pytest

from DETECT_BEES.config import DetectorConfig, ModelConfig
from DETECT_BEES.model_loader import STATUS_LOADED, InferenceContext


class FakeSession:
    """
    Substituto de InferenceSession.

    `output` pode ser um array fixo ou uma função tensor → array.
    """

    def __init__(
        self,
        output: Union[np.ndarray, List[float], Callable[[np.ndarray], np.ndarray]],
        input_name: str = "pixel_values",
    ) -> None:
        self._output = output
        self._input_name = input_name
        self.calls: List[dict] = []

    def get_inputs(self):
        return [SimpleNamespace(name=self._input_name)]

    def get_providers(self):
        return ["CPUExecutionProvider"]

    def run(self, output_names: Optional[list], feeds: dict):
        self.calls.append(feeds)
        tensor = feeds[self._input_name]
        if callable(self._output):
            out = self._output(tensor)
        else:
            out = self._output
        return [np.asarray(out, dtype=np.float32).reshape(1, -1)]


def make_context(session: FakeSession) -> InferenceContext:
    return InferenceContext(
        session=session,
        input_name=session.get_inputs()[0].name,
        status_message=STATUS_LOADED,
        model_path="fake.onnx",
    )


@pytest.fixture
def fallback_config(tmp_path) -> DetectorConfig:
    """Config apontando para um modelo inexistente → modo fallback."""
    return DetectorConfig(model=ModelConfig(model_path=str(tmp_path / "missing.onnx")))


@pytest.fixture
def write_image(tmp_path):
    """Grava imagem BGR(A) uniforme e devolve o caminho."""

    def _write(name: str, bgr, shape=(48, 64)) -> str:
        channels = len(bgr)
        img = np.zeros((shape[0], shape[1], channels), dtype=np.uint8)
        img[:, :] = bgr
        path = tmp_path / name
        assert cv2.imwrite(str(path), img)
        return str(path)

    return _write


@pytest.fixture
def gray_ramp_video(tmp_path) -> str:
    """
    Vídeo MJPG de 10 frames a 10 fps; frame i é cinza uniforme i*25.
    Frame do meio (5) → intensidade 125, timestamp 0.5s.
    """
    path = tmp_path / "ramp.avi"
    writer = cv2.VideoWriter(
        str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (64, 48)
    )
    if not writer.isOpened():
        pytest.skip("OpenCV sem encoder MJPG nesta build")
    for i in range(10):
        writer.write(np.full((48, 64, 3), i * 25, dtype=np.uint8))
    writer.release()
    return str(path)
