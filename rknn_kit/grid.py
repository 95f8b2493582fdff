"""
Anchor-grid decoding for one detection branch.

Each branch contributes three consecutive output tensors:

- box:       (1, 4, H, W)  distances from the cell centre to the box edges, in cells
- score:     (1, C, H, W)  per-class confidence
- score_sum: (1, 1, H, W)  summed confidence, used to reject background cells early
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .errors import InvalidTensorShape, UnsupportedDflLength
from .quant import INT8_MIN, dequantize_array, quantize, zero_point_as_int8
from .tensor_view import RawOutputBuffer, TensorView
from .types import Detection, TensorDescriptor


BRANCH_COUNT = 3
TENSORS_PER_BRANCH = 3
BOX_COORDS = 4

# below every int8 value; marks classes that did not pass the scan
_NO_CLASS = INT8_MIN - 1
_PIXEL_MAX = np.iinfo(np.uint32).max


@dataclass(frozen=True)
class BranchLayout:
    branch: int
    box_idx: int
    score_idx: int
    score_sum_idx: int
    grid_h: int
    grid_w: int
    stride: int
    class_count: int

    @classmethod
    def from_descriptors(
        cls,
        descriptors: Sequence[TensorDescriptor],
        branch: int,
        input_height: int,
    ) -> "BranchLayout":
        per_branch = len(descriptors) // BRANCH_COUNT
        box_idx = branch * per_branch
        score_idx = box_idx + 1
        score_sum_idx = box_idx + 2
        box_desc = descriptors[box_idx]
        _, box_c, grid_h, grid_w = box_desc.dims4
        if box_c != BOX_COORDS:
            raise UnsupportedDflLength(
                f"Box output {box_idx} has shape {box_desc.dims} (dfl_len={box_c / BOX_COORDS:g}); "
                "only dfl_len=1 is supported."
            )
        if grid_h <= 0 or grid_w <= 0:
            raise InvalidTensorShape(f"Box output {box_idx} has an empty grid: {box_desc.dims}.")
        stride = int(input_height) // grid_h
        if stride <= 0:
            raise InvalidTensorShape(
                f"Input height {input_height} is smaller than grid height {grid_h} (output {box_idx})."
            )

        _, class_count, score_h, score_w = descriptors[score_idx].dims4
        if class_count <= 0 or (score_h, score_w) != (grid_h, grid_w):
            raise InvalidTensorShape(
                f"Score output {score_idx} shape {descriptors[score_idx].dims} "
                f"does not match grid {grid_h}x{grid_w}."
            )
        _, sum_c, sum_h, sum_w = descriptors[score_sum_idx].dims4
        if sum_c != 1 or (sum_h, sum_w) != (grid_h, grid_w):
            raise InvalidTensorShape(
                f"Score-sum output {score_sum_idx} shape {descriptors[score_sum_idx].dims} "
                f"does not match grid {grid_h}x{grid_w}."
            )

        return cls(
            branch=branch,
            box_idx=box_idx,
            score_idx=score_idx,
            score_sum_idx=score_sum_idx,
            grid_h=grid_h,
            grid_w=grid_w,
            stride=stride,
            class_count=class_count,
        )


def _to_pixels(values: np.ndarray) -> np.ndarray:
    # truncate toward zero and saturate to the unsigned 32-bit range; NaN -> 0
    values = np.nan_to_num(np.trunc(values), nan=0.0, posinf=float(_PIXEL_MAX), neginf=0.0)
    return np.clip(values, 0.0, float(_PIXEL_MAX)).astype(np.int64)


def decode_branch(
    layout: BranchLayout,
    descriptors: Sequence[TensorDescriptor],
    buffers: Sequence[RawOutputBuffer],
    confidence_threshold: float,
) -> List[Detection]:
    """
    Decode one branch into detections, in row-major cell order.

    A cell survives when its score-sum reaches the threshold and at least one
    class score exceeds both the threshold and the score zero point. All
    comparisons happen in the int8 domain of the tensor being compared.
    """

    box_desc = descriptors[layout.box_idx]
    score_desc = descriptors[layout.score_idx]
    sum_desc = descriptors[layout.score_sum_idx]

    sum_view = TensorView(buffers[layout.score_sum_idx], sum_desc.dims)
    score_view = TensorView(buffers[layout.score_idx], score_desc.dims)
    box_view = TensorView(buffers[layout.box_idx], box_desc.dims)

    sum_threshold_q = quantize(confidence_threshold, sum_desc.zero_point, sum_desc.scale)
    score_threshold_q = quantize(confidence_threshold, score_desc.zero_point, score_desc.scale)

    # fast reject
    candidates = sum_view.plane(0, 0) >= sum_threshold_q
    if not candidates.any():
        return []

    # class scan: strictly above the threshold and the zero point, first max wins
    floor = max(score_threshold_q, zero_point_as_int8(score_desc.zero_point))
    scores = score_view.channels(0, 0, layout.class_count).astype(np.int16)
    masked = np.where(scores > floor, scores, _NO_CLASS)
    class_ids = masked.argmax(axis=0)
    max_q = masked.max(axis=0)

    ii, jj = np.nonzero(candidates & (max_q > _NO_CLASS))
    if ii.size == 0:
        return []

    b = dequantize_array(box_view.channels(0, 0, BOX_COORDS)[:, ii, jj], box_desc.zero_point, box_desc.scale)
    col = jj.astype(np.float32)
    row = ii.astype(np.float32)
    half = np.float32(0.5)
    stride = np.float32(layout.stride)

    x1 = (-b[0] + col + half) * stride
    y1 = (-b[1] + row + half) * stride
    x2 = (b[2] + col + half) * stride
    y2 = (b[3] + row + half) * stride
    rects = _to_pixels(np.stack([x1, y1, x2 - x1, y2 - y1], axis=1))

    confidences = dequantize_array(max_q[ii, jj], score_desc.zero_point, score_desc.scale)

    return [
        Detection(
            class_id=int(class_ids[i, j]),
            confidence=float(conf),
            box=(int(x), int(y), int(w), int(h)),
        )
        for i, j, conf, (x, y, w, h) in zip(ii, jj, confidences, rects)
    ]
