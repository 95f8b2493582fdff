from __future__ import annotations

import logging
from typing import List, Sequence

from .config import PostProcessConfig
from .errors import InvalidOutputCount, InvalidTensorShape
from .grid import BRANCH_COUNT, TENSORS_PER_BRANCH, BranchLayout, decode_branch
from .nms import sort_by_confidence, suppress
from .tensor_view import RawOutputBuffer
from .types import Detection, TensorDescriptor


logger = logging.getLogger(__name__)


class PostProcessor:
    """
    Post-process for three-branch, int8-quantized YOLO heads (yolov6/yolov8 NPU exports).

    Outputs are grouped per branch (large, medium, small stride) as
    [box, score, score_sum, ...]; any extra tensors in a group are ignored.

    Buffers are only read during `process`; nothing is kept afterwards, so one
    instance can serve concurrent calls on distinct buffers.
    """

    def __init__(self, cfg: PostProcessConfig = PostProcessConfig()):
        self.cfg = cfg

    def process(
        self,
        descriptors: Sequence[TensorDescriptor],
        buffers: Sequence[RawOutputBuffer],
        input_height: int,
    ) -> List[Detection]:
        """
        Decode, filter and de-duplicate detections.

        Args:
            descriptors: output tensor metadata, ordered by output index
            buffers: raw int8 output buffers, same order as `descriptors`
            input_height: model input height in pixels (sets each branch's stride)
        """

        self._validate(descriptors, buffers, input_height)

        detections: List[Detection] = []
        for branch in range(BRANCH_COUNT):
            layout = BranchLayout.from_descriptors(descriptors, branch, input_height)
            found = decode_branch(layout, descriptors, buffers, self.cfg.conf_threshold)
            logger.debug(
                "branch %d (grid %dx%d, stride %d): %d candidates",
                branch,
                layout.grid_h,
                layout.grid_w,
                layout.stride,
                len(found),
            )
            detections.extend(found)

        if not detections:
            return detections

        kept = suppress(sort_by_confidence(detections), self.cfg.iou_threshold, self.cfg.max_detections)
        logger.debug("nms kept %d of %d detections", len(kept), len(detections))
        return kept

    # ------------------------------------------------------------------ #
    # Helper internal
    # ------------------------------------------------------------------ #
    @staticmethod
    def _validate(
        descriptors: Sequence[TensorDescriptor],
        buffers: Sequence[RawOutputBuffer],
        input_height: int,
    ) -> None:
        output_count = len(descriptors)
        if len(buffers) != output_count:
            raise InvalidOutputCount(f"Got {len(buffers)} buffers for {output_count} output descriptors.")
        if output_count % BRANCH_COUNT != 0 or output_count // BRANCH_COUNT < TENSORS_PER_BRANCH:
            raise InvalidOutputCount(
                f"Expected {BRANCH_COUNT} branches of at least {TENSORS_PER_BRANCH} outputs, got {output_count}."
            )
        if input_height <= 0:
            raise InvalidTensorShape(f"input_height must be > 0 (got {input_height}).")


def run(
    tensor_descriptors: Sequence[TensorDescriptor],
    buffers: Sequence[RawOutputBuffer],
    input_height: int,
    confidence_threshold: float,
    iou_threshold: float,
) -> List[Detection]:
    cfg = PostProcessConfig(conf_threshold=confidence_threshold, iou_threshold=iou_threshold)
    return PostProcessor(cfg).process(tensor_descriptors, buffers, input_height)
