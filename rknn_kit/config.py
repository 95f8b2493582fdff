from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .nms import NMSConfig


PathLike = Union[str, Path]


@dataclass(frozen=True)
class PostProcessConfig:
    """
    Thresholds for decoding and NMS.

    - conf_threshold: minimum class confidence (and score-sum) for a grid cell; any finite
      value, compared after quantization into each tensor's int8 domain
    - iou_threshold: same-class overlap above which the lower-confidence box is dropped
    - max_detections: optional cap on the number of detections returned
    """

    conf_threshold: float = 0.5
    iou_threshold: float = 0.5
    max_detections: Optional[int] = None

    def __post_init__(self) -> None:
        if not math.isfinite(self.conf_threshold):
            raise ValueError("conf_threshold must be a finite number")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be in [0, 1]")
        if self.max_detections is not None and self.max_detections <= 0:
            raise ValueError("max_detections must be > 0 if provided")

    def nms_config(self) -> NMSConfig:
        return NMSConfig(iou_threshold=self.iou_threshold, max_detections=self.max_detections)


def _optional_number(payload: Dict[str, Any], key: str, default: float) -> float:
    if key not in payload:
        return default
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def load_postprocess_config(path: PathLike) -> PostProcessConfig:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Post-process config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid post-process config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Post-process config must be a JSON object")

    allowed = {"conf_threshold", "iou_threshold", "max_detections"}
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown post-process config keys: {unknown}")

    max_detections = payload.get("max_detections")
    if max_detections is not None and (isinstance(max_detections, bool) or not isinstance(max_detections, int)):
        raise ValueError("max_detections must be an integer if provided")

    return PostProcessConfig(
        conf_threshold=_optional_number(payload, "conf_threshold", PostProcessConfig.conf_threshold),
        iou_threshold=_optional_number(payload, "iou_threshold", PostProcessConfig.iou_threshold),
        max_detections=max_detections,
    )
