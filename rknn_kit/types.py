from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, Tuple

from .errors import IndexOutOfRange, UnsupportedQuantType


class QuantKind(IntEnum):
    """
    Tensor quantization kinds; values match the runtime's tensor attribute codes.
    """

    NONE = 0
    SYMMETRIC_DFP = 1
    AFFINE_ASYMMETRIC = 2

    @classmethod
    def from_code(cls, code: int) -> "QuantKind":
        try:
            return cls(int(code))
        except ValueError:
            raise UnsupportedQuantType(f"Unsupported quantization type code: {code!r}") from None


class TensorKind(Enum):
    INPUT = "input"
    OUTPUT = "output"


MAX_DIMS = 4


@dataclass(frozen=True)
class TensorDescriptor:
    """
    Shape and quantization metadata for one model tensor, in NCHW order.
    """

    dims: Tuple[int, ...]
    zero_point: int = 0
    scale: float = 1.0
    quant_kind: QuantKind = QuantKind.AFFINE_ASYMMETRIC
    index: Optional[int] = None

    def __post_init__(self) -> None:
        dims = tuple(int(d) for d in self.dims)
        if len(dims) > MAX_DIMS:
            raise IndexOutOfRange(f"Tensors have at most {MAX_DIMS} dims (got shape {dims}).")
        if any(d < 0 for d in dims):
            raise IndexOutOfRange(f"Negative dimension in shape {dims}.")
        object.__setattr__(self, "dims", dims)
        object.__setattr__(self, "quant_kind", QuantKind.from_code(self.quant_kind))

    @property
    def dims4(self) -> Tuple[int, int, int, int]:
        padded = (1,) * (MAX_DIMS - len(self.dims)) + self.dims
        return padded[0], padded[1], padded[2], padded[3]


@dataclass(frozen=True)
class Detection:
    """
    One decoded detection; `box` is (x, y, width, height) in input-image pixels.
    """

    class_id: int
    confidence: float
    box: Tuple[int, int, int, int]

    def as_xyxy(self) -> Tuple[int, int, int, int]:
        x, y, w, h = self.box
        return x, y, x + w, y + h
