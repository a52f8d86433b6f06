"""
RGBA interleaved (224x224x4 uint8) → tensor NCHW float32 [1, 3, 224, 224].

Cada amostra vira value / 127.5 - 1.0, ou seja, [0, 255] → [-1, 1].
Alpha é descartado. Layout planar: todos os R, depois G, depois B.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Union

import numpy as np

if TYPE_CHECKING:
    from .frame_acquisition import RasterFrame

INPUT_SIZE = 224
RGBA_CHANNELS = 4
MODEL_CHANNELS = 3

PixelBuffer = Union[bytes, bytearray, memoryview, np.ndarray]


def build_input_tensor(
    rgba: PixelBuffer, size: int = INPUT_SIZE
) -> np.ndarray:
    """
    Converte buffer RGBA interleaved em tensor planar normalizado.

    rgba: bytes/bytearray/memoryview ou ndarray uint8 com exatamente
          size*size*4 elementos (qualquer shape; é achatado).
    """
    if isinstance(rgba, np.ndarray):
        flat = rgba.reshape(-1)
    else:
        flat = np.frombuffer(rgba, dtype=np.uint8)

    expected = size * size * RGBA_CHANNELS
    if flat.shape[0] != expected:
        raise ValueError(
            f"buffer RGBA deve ter {expected} valores ({size}x{size}x4), "
            f"mas veio {flat.shape[0]}"
        )

    hwc = flat.reshape(size, size, RGBA_CHANNELS)[:, :, :MODEL_CHANNELS]
    chw = hwc.transpose(2, 0, 1).astype(np.float32)
    tensor = chw / np.float32(127.5) - np.float32(1.0)
    return np.ascontiguousarray(tensor[np.newaxis, ...], dtype=np.float32)


def preprocess_frame(frame: "RasterFrame") -> np.ndarray:
    return build_input_tensor(frame.pixels, size=frame.pixels.shape[0])
