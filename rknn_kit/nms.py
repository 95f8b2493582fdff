from __future__ import annotations

from dataclasses import dataclass
from operator import attrgetter
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .types import Detection


Rect = Tuple[int, int, int, int]


@dataclass(frozen=True)
class NMSConfig:
    iou_threshold: float = 0.5
    # None keeps every surviving detection.
    max_detections: Optional[int] = None


def _iou_one_to_many(rect: np.ndarray, others: np.ndarray) -> np.ndarray:
    x1 = np.maximum(rect[0], others[:, 0])
    y1 = np.maximum(rect[1], others[:, 1])
    x2 = np.minimum(rect[0] + rect[2], others[:, 0] + others[:, 2])
    y2 = np.minimum(rect[1] + rect[3], others[:, 1] + others[:, 3])

    inter = np.maximum(0, x2 - x1) * np.maximum(0, y2 - y1)
    union = rect[2] * rect[3] + others[:, 2] * others[:, 3] - inter
    iou = np.zeros(others.shape[0], dtype=np.float32)
    nonzero = union != 0
    iou[nonzero] = inter[nonzero].astype(np.float32) / union[nonzero].astype(np.float32)
    return iou


def calc_iou(rect_a: Rect, rect_b: Rect) -> float:
    """
    IoU of two (x, y, w, h) rects; 0.0 when the union is empty.
    """

    others = np.array([rect_b], dtype=np.int64)
    return float(_iou_one_to_many(np.array(rect_a, dtype=np.int64), others)[0])


def sort_by_confidence(detections: Sequence[Detection]) -> List[Detection]:
    """
    Confidence-descending sort. Stable, so equal confidences keep decode order.
    """

    return sorted(detections, key=attrgetter("confidence"), reverse=True)


def suppress(
    detections: Sequence[Detection],
    iou_threshold: float,
    max_detections: Optional[int] = None,
) -> List[Detection]:
    """
    Greedy class-aware suppression over detections already sorted by confidence.

    A kept detection suppresses every later detection of the same class whose
    IoU with it exceeds `iou_threshold`. Returns the kept subsequence.
    """

    n = len(detections)
    if n == 0:
        return []

    rects = np.array([d.box for d in detections], dtype=np.int64).reshape(n, 4)
    class_ids = np.array([d.class_id for d in detections], dtype=np.int64)
    threshold = np.float32(iou_threshold)
    suppressed = np.zeros(n, dtype=bool)
    keep: List[int] = []

    for i in range(n):
        if suppressed[i]:
            continue
        keep.append(i)
        if max_detections is not None and len(keep) >= max_detections:
            break

        later = np.arange(i + 1, n)
        later = later[(class_ids[later] == class_ids[i]) & ~suppressed[later]]
        if later.size == 0:
            continue
        iou = _iou_one_to_many(rects[i], rects[later])
        suppressed[later[iou > threshold]] = True

    return [detections[i] for i in keep]


def nms(detections: Sequence[Detection], cfg: NMSConfig) -> List[Detection]:
    return suppress(sort_by_confidence(detections), cfg.iou_threshold, cfg.max_detections)
