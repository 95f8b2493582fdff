"""
Post-processing for int8-quantized YOLO outputs from NPU runtimes.

Turns raw output buffers plus their tensor metadata into class-aware,
NMS-filtered detections. Depends only on NumPy; the inference runtime itself
is an external collaborator described by `InferenceEngine`.
"""

from .types import Detection, QuantKind, TensorDescriptor, TensorKind
from .errors import (
    IndexOutOfRange,
    InvalidOutputCount,
    InvalidTensorShape,
    PostProcessError,
    UnsupportedDflLength,
    UnsupportedQuantType,
)
from .quant import dequantize, dequantize_array, quantize
from .tensor_view import TensorView
from .grid import BranchLayout, decode_branch
from .nms import NMSConfig, calc_iou, nms
from .config import PostProcessConfig, load_postprocess_config
from .postprocess import PostProcessor, run
from .engine import InferenceEngine, RecordedEngine, run_engine

__all__ = [
    "Detection",
    "QuantKind",
    "TensorDescriptor",
    "TensorKind",
    "IndexOutOfRange",
    "InvalidOutputCount",
    "InvalidTensorShape",
    "PostProcessError",
    "UnsupportedDflLength",
    "UnsupportedQuantType",
    "quantize",
    "dequantize",
    "dequantize_array",
    "TensorView",
    "BranchLayout",
    "decode_branch",
    "NMSConfig",
    "calc_iou",
    "nms",
    "PostProcessConfig",
    "load_postprocess_config",
    "PostProcessor",
    "run",
    "InferenceEngine",
    "RecordedEngine",
    "run_engine",
]
