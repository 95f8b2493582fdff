from __future__ import annotations

from typing import Sequence, Tuple, Union

import numpy as np

from .errors import IndexOutOfRange, InvalidTensorShape
from .types import MAX_DIMS


RawOutputBuffer = Union[bytes, bytearray, memoryview, np.ndarray]


class TensorView:
    """
    Bounds-checked, read-only NCHW accessor over a borrowed int8 output buffer.

    The buffer is wrapped, never copied. Do not keep a view past the inference
    call that produced the buffer: the runtime may reuse that memory.
    """

    def __init__(self, buffer: RawOutputBuffer, dims: Sequence[int]):
        dims = tuple(int(d) for d in dims)
        if len(dims) > MAX_DIMS:
            raise IndexOutOfRange(f"Tensors have at most {MAX_DIMS} dims (got shape {dims}).")
        n, c, h, w = (1,) * (MAX_DIMS - len(dims)) + dims
        self.shape: Tuple[int, int, int, int] = (n, c, h, w)
        self.size = n * c * h * w

        if isinstance(buffer, np.ndarray):
            if buffer.dtype.itemsize != 1:
                raise InvalidTensorShape(f"Expected a 1-byte element buffer, got dtype {buffer.dtype}.")
            flat = buffer.reshape(-1).view(np.int8)
        else:
            flat = np.frombuffer(buffer, dtype=np.int8)

        if flat.size < self.size:
            raise IndexOutOfRange(
                f"Buffer holds {flat.size} elements but shape {self.shape} needs {self.size}."
            )
        flat = flat[: self.size]
        flat.flags.writeable = False
        self._flat = flat
        self._array = flat.reshape(self.shape)

    def _check(self, coords: Tuple[int, ...], bounds: Tuple[int, ...]) -> None:
        for axis, (v, bound) in enumerate(zip(coords, bounds)):
            if v < 0 or v >= bound:
                raise IndexOutOfRange(
                    f"Index {coords} out of range for shape {self.shape} (axis {axis})."
                )

    def offset(self, n: int, c: int, h: int, w: int) -> int:
        self._check((n, c, h, w), self.shape)
        _, C, H, W = self.shape
        off = ((n * C + c) * H + h) * W + w
        if off >= self._flat.size:
            raise IndexOutOfRange(f"Offset {off} beyond buffer of {self._flat.size} elements.")
        return off

    def get(self, n: int, c: int, h: int, w: int) -> int:
        return int(self._flat[self.offset(n, c, h, w)])

    def channels(self, n: int, start: int, stop: int) -> np.ndarray:
        """
        Read-only (stop - start, H, W) view of channels [start, stop) of batch `n`.
        """

        _, C, _, _ = self.shape
        self._check((n,), self.shape[:1])
        if start < 0 or stop > C or start > stop:
            raise IndexOutOfRange(f"Channels [{start}, {stop}) out of range for shape {self.shape}.")
        return self._array[n, start:stop]

    def plane(self, n: int, c: int) -> np.ndarray:
        self._check((n, c), self.shape[:2])
        return self._array[n, c]
