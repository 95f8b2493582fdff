"""
Inference engine contract and a hardware-free replay engine.

The post-processing core never talks to the NPU runtime directly. Anything
that can report tensor metadata and hand out output buffers satisfies
`InferenceEngine`; `RecordedEngine` replays a captured inference from memory
or from an `.npz` file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple, Union

import numpy as np

from .config import PostProcessConfig
from .errors import IndexOutOfRange, InvalidOutputCount
from .postprocess import PostProcessor
from .tensor_view import RawOutputBuffer
from .types import Detection, QuantKind, TensorDescriptor, TensorKind


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class InferenceEngine(Protocol):
    def query_io_counts(self) -> Tuple[int, int]:
        ...

    def query_tensor_attrs(self, kind: TensorKind, index: int) -> TensorDescriptor:
        ...

    def get_output_buffers(self) -> Sequence[RawOutputBuffer]:
        ...


class RecordedEngine:
    """
    Replays one captured inference.

    Output arrays must be int8 (or uint8 holding int8 bytes) and shaped like
    their descriptors' dims.
    """

    def __init__(
        self,
        input_descriptor: TensorDescriptor,
        output_descriptors: Sequence[TensorDescriptor],
        output_buffers: Sequence[np.ndarray],
    ):
        if len(output_descriptors) != len(output_buffers):
            raise InvalidOutputCount(
                f"Got {len(output_buffers)} buffers for {len(output_descriptors)} output descriptors."
            )
        self.input_descriptor = input_descriptor
        self.output_descriptors = tuple(output_descriptors)
        self.output_buffers = tuple(np.ascontiguousarray(b) for b in output_buffers)

    def query_io_counts(self) -> Tuple[int, int]:
        return 1, len(self.output_descriptors)

    def query_tensor_attrs(self, kind: TensorKind, index: int) -> TensorDescriptor:
        if kind is TensorKind.INPUT:
            if index != 0:
                raise IndexOutOfRange(f"Input index {index} out of range (1 input).")
            return self.input_descriptor
        if not 0 <= index < len(self.output_descriptors):
            raise IndexOutOfRange(
                f"Output index {index} out of range ({len(self.output_descriptors)} outputs)."
            )
        return self.output_descriptors[index]

    def get_output_buffers(self) -> Sequence[RawOutputBuffer]:
        return list(self.output_buffers)

    @classmethod
    def from_npz(cls, path: PathLike) -> "RecordedEngine":
        """
        Load a capture written by `save_npz`.

        Keys: `output_<i>` arrays, `zero_points`, `scales`, `quant_types`, `input_dims`.
        """

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(str(path))

        with np.load(path) as data:
            zero_points = data["zero_points"].tolist()
            scales = data["scales"].tolist()
            quant_types = data["quant_types"].tolist()
            input_dims = tuple(int(d) for d in data["input_dims"])
            outputs = [np.array(data[f"output_{i}"], dtype=np.int8) for i in range(len(zero_points))]

        if not (len(scales) == len(quant_types) == len(zero_points)):
            raise ValueError(f"Inconsistent output metadata lengths in {path}")

        descriptors = [
            TensorDescriptor(
                dims=out.shape,
                zero_point=int(zp),
                scale=float(scale),
                quant_kind=QuantKind.from_code(code),
                index=i,
            )
            for i, (out, zp, scale, code) in enumerate(zip(outputs, zero_points, scales, quant_types))
        ]
        return cls(TensorDescriptor(dims=input_dims, quant_kind=QuantKind.NONE, index=0), descriptors, outputs)

    def save_npz(self, path: PathLike) -> None:
        arrays = {f"output_{i}": np.asarray(b, dtype=np.int8) for i, b in enumerate(self.output_buffers)}
        np.savez(
            path,
            zero_points=np.array([d.zero_point for d in self.output_descriptors], dtype=np.int32),
            scales=np.array([d.scale for d in self.output_descriptors], dtype=np.float32),
            quant_types=np.array([int(d.quant_kind) for d in self.output_descriptors], dtype=np.int32),
            input_dims=np.array(self.input_descriptor.dims, dtype=np.int64),
            **arrays,
        )


def query_output_descriptors(engine: InferenceEngine) -> List[TensorDescriptor]:
    _, n_output = engine.query_io_counts()
    return [engine.query_tensor_attrs(TensorKind.OUTPUT, i) for i in range(n_output)]


def run_engine(
    engine: InferenceEngine,
    cfg: PostProcessConfig = PostProcessConfig(),
    input_height: Optional[int] = None,
) -> List[Detection]:
    """
    Query metadata and outputs from an engine that has already run, then post-process.

    `input_height` defaults to the H dim (NCHW) of input 0.
    """

    n_input, n_output = engine.query_io_counts()
    logger.debug("engine reports %d inputs, %d outputs", n_input, n_output)
    if input_height is None:
        input_height = engine.query_tensor_attrs(TensorKind.INPUT, 0).dims4[2]

    descriptors = query_output_descriptors(engine)
    buffers = engine.get_output_buffers()
    return PostProcessor(cfg).process(descriptors, buffers, input_height)
