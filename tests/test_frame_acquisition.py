"""
Tests for image/video frame acquisition, file-type checks, timeout and
cancellation.
"""

from __future__ import annotations

import subprocess
import sys
import threading
import time
from pathlib import Path

import cv2
import numpy as np
import pytest

from DETECT_BEES import frame_acquisition
from DETECT_BEES.errors import (
    AnalysisCancelled,
    DecodeFailure,
    FrameTimeout,
    UnsupportedFileType,
)
from DETECT_BEES.frame_acquisition import (
    RasterFrame,
    acquire_frame,
    detect_media_kind,
    load_image_frame,
)


@pytest.mark.parametrize(
    "name,kind",
    [
        ("a.png", "image"),
        ("b.JPG", "image"),
        ("c.webp", "image"),
        ("d.mp4", "video"),
        ("e.avi", "video"),
        ("f.mov", "video"),
    ],
)
def test_detect_media_kind(name, kind):
    assert detect_media_kind(name) == kind


@pytest.mark.parametrize("name", ["notes.txt", "archive.zip", "noext"])
def test_unsupported_file_type(name):
    with pytest.raises(UnsupportedFileType):
        detect_media_kind(name)


def test_image_frame_is_rgba_224(write_image):
    path = write_image("red.png", (0, 0, 255))  # BGR
    frame = acquire_frame(path)
    assert isinstance(frame, RasterFrame)
    assert frame.pixels.shape == (224, 224, 4)
    assert frame.pixels.dtype == np.uint8
    assert np.all(frame.pixels[..., 0] == 255)
    assert np.all(frame.pixels[..., 1] == 0)
    assert np.all(frame.pixels[..., 2] == 0)
    assert np.all(frame.pixels[..., 3] == 255)
    assert frame.timestamp_sec == 0.0


def test_image_alpha_is_kept(write_image):
    path = write_image("blue_alpha.png", (255, 0, 0, 128))  # BGRA
    frame = load_image_frame(path)
    assert np.all(frame.pixels[..., 2] == 255)
    assert np.all(frame.pixels[..., 3] == 128)


def test_frame_is_immutable(write_image):
    frame = load_image_frame(write_image("x.png", (1, 2, 3)))
    with pytest.raises(ValueError):
        frame.pixels[0, 0, 0] = 9


def test_custom_size(write_image):
    frame = acquire_frame(write_image("s.png", (9, 9, 9)), size=32)
    assert frame.pixels.shape == (32, 32, 4)


def test_video_middle_frame(gray_ramp_video):
    frame = acquire_frame(gray_ramp_video)
    assert frame.pixels.shape == (224, 224, 4)
    assert frame.timestamp_sec == pytest.approx(0.5)
    assert abs(float(frame.pixels[..., 0].mean()) - 125.0) < 8.0


def test_corrupt_image_is_decode_failure(tmp_path):
    path = tmp_path / "broken.png"
    path.write_bytes(b"not an image")
    with pytest.raises(DecodeFailure):
        acquire_frame(str(path))


def test_corrupt_video_is_decode_failure(tmp_path):
    path = tmp_path / "broken.mp4"
    path.write_bytes(b"\x00" * 64)
    with pytest.raises(DecodeFailure):
        acquire_frame(str(path))


def test_missing_file_is_decode_failure(tmp_path):
    with pytest.raises(DecodeFailure):
        acquire_frame(str(tmp_path / "ghost.png"))


def test_cancelled_before_decode(write_image):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(AnalysisCancelled):
        acquire_frame(write_image("c.png", (0, 0, 0)), cancel_event=cancel)


def test_timeout(write_image, monkeypatch):
    release = threading.Event()

    def _stuck(path, size):
        release.wait(5.0)
        raise DecodeFailure("unreachable")

    monkeypatch.setattr(frame_acquisition, "load_image_frame", _stuck)
    try:
        with pytest.raises(FrameTimeout):
            acquire_frame(write_image("t.png", (0, 0, 0)), timeout_sec=0.05)
    finally:
        release.set()


def test_timeout_is_a_decode_failure():
    assert issubclass(FrameTimeout, DecodeFailure)


def test_float_tiff_is_scaled_to_uint8(tmp_path):
    path = tmp_path / "f.tiff"
    assert cv2.imwrite(str(path), np.full((48, 64, 3), 0.5, dtype=np.float32))

    frame = load_image_frame(path)
    assert frame.pixels.dtype == np.uint8
    assert frame.pixels.shape == (224, 224, 4)
    assert np.all(frame.pixels[..., :3] == 128)
    assert np.all(frame.pixels[..., 3] == 255)


def test_conversion_error_is_decode_failure(write_image, monkeypatch):
    def _broken(img):
        raise ValueError("Invalid integer data type 'f'.")

    monkeypatch.setattr(frame_acquisition, "_to_uint8", _broken)
    with pytest.raises(DecodeFailure):
        load_image_frame(write_image("x.png", (0, 0, 0)))


def test_cancel_interrupts_running_decode(write_image, monkeypatch):
    release = threading.Event()

    def _slow(path, size):
        release.wait(2.0)
        raise DecodeFailure("unreachable")

    monkeypatch.setattr(frame_acquisition, "load_image_frame", _slow)
    cancel = threading.Event()
    timer = threading.Timer(0.05, cancel.set)
    path = write_image("s.png", (0, 0, 0))
    start = time.monotonic()
    timer.start()
    try:
        with pytest.raises(AnalysisCancelled):
            acquire_frame(path, timeout_sec=None, cancel_event=cancel)
        assert time.monotonic() - start < 0.5
    finally:
        timer.cancel()
        release.set()


_STUCK_DECODE_SCRIPT = """
import sys, time
from DETECT_BEES import frame_acquisition
from DETECT_BEES.errors import FrameTimeout

def _sleepy(path, size):
    time.sleep(4.0)

frame_acquisition.load_image_frame = _sleepy
try:
    frame_acquisition.acquire_frame(sys.argv[1], timeout_sec=0.1)
except FrameTimeout:
    print("timed out")
"""


def test_process_exits_after_timeout(write_image):
    path = write_image("h.png", (0, 0, 0))
    root = Path(__file__).resolve().parents[1]
    start = time.monotonic()
    proc = subprocess.run(
        [sys.executable, "-c", _STUCK_DECODE_SCRIPT, path],
        cwd=str(root),
        capture_output=True,
        text=True,
        timeout=10,
    )
    elapsed = time.monotonic() - start
    assert proc.returncode == 0, proc.stderr
    assert "timed out" in proc.stdout
    assert elapsed < 2.0
