"""
Conversions between float values and the int8 affine-quantized domain.

All arithmetic is float32 so thresholds land on exactly the same integer the
runtime's own reference decode produces.
"""

from __future__ import annotations

import math

import numpy as np


INT8_MIN = -128
INT8_MAX = 127


def quantize(value: float, zero_point: int, scale: float) -> int:
    """
    `value / scale + zero_point`, clipped to int8 and truncated toward zero.

    Truncates rather than rounds: every threshold comparison depends on the
    exact integer this returns.
    """

    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        q = np.float32(value) / np.float32(scale) + np.float32(zero_point)
    q = float(q)
    if math.isnan(q):
        return 0
    q = min(max(q, float(INT8_MIN)), float(INT8_MAX))
    return int(q)


def dequantize(q: int, zero_point: int, scale: float) -> float:
    return float((np.float32(q) - np.float32(zero_point)) * np.float32(scale))


def dequantize_array(values: np.ndarray, zero_point: int, scale: float) -> np.ndarray:
    return (np.asarray(values, dtype=np.float32) - np.float32(zero_point)) * np.float32(scale)


def zero_point_as_int8(zero_point: int) -> int:
    # two's-complement wrap, same as a narrowing integer cast
    return ((int(zero_point) + 128) % 256) - 128
