from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from .metadata import class_names_from_mapping, load_class_names

logger = logging.getLogger(__name__)

UNKNOWN_LABEL = "unknown"

# Thresholds are kept strictly inside (0, 1).
THRESHOLD_MIN = 1e-6
THRESHOLD_MAX = 1.0 - 1e-6

COCO_CLASSES: Tuple[str, ...] = (
    "person", "bicycle", "car", "motorcycle", "airplane", "bus", "train", "truck", "boat", "traffic light",
    "fire hydrant", "stop sign", "parking meter", "bench", "bird", "cat", "dog", "horse", "sheep", "cow",
    "elephant", "bear", "zebra", "giraffe", "backpack", "umbrella", "handbag", "tie", "suitcase", "frisbee",
    "skis", "snowboard", "sports ball", "kite", "baseball bat", "baseball glove", "skateboard", "surfboard",
    "tennis racket", "bottle", "wine glass", "cup", "fork", "knife", "spoon", "bowl", "banana", "apple",
    "sandwich", "orange", "broccoli", "carrot", "hot dog", "pizza", "donut", "cake", "chair", "couch",
    "potted plant", "bed", "dining table", "toilet", "tv", "laptop", "mouse", "remote", "keyboard", "cell phone",
    "microwave", "oven", "toaster", "sink", "refrigerator", "book", "clock", "vase", "scissors", "teddy bear",
    "hair drier", "toothbrush",
)

_DEFAULT_CONFIDENCE = 0.25
_DEFAULT_IOU = 0.45


def resolve_label(class_names: Sequence[str], class_index: int) -> str:
    if 0 <= class_index < len(class_names):
        return class_names[class_index]
    return UNKNOWN_LABEL


def clamp_threshold(value: Any, default: float) -> float:
    """
    Clamp a threshold into the open interval (0, 1).

    UI sliders may emit 0.0 / 1.0 transiently; those are pulled inside the
    interval instead of rejected. Non-numeric or NaN input falls back to `default`.
    """

    try:
        v = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(v):
        return default
    return min(max(v, THRESHOLD_MIN), THRESHOLD_MAX)


@dataclass(frozen=True)
class DetectionConfig:
    """
    Per-call detection settings.

    Instances are immutable; use `with_thresholds` (or `dataclasses.replace`)
    to derive a new one between frames.
    """

    confidence_threshold: float = _DEFAULT_CONFIDENCE
    iou_threshold: float = _DEFAULT_IOU
    class_names: Tuple[str, ...] = COCO_CLASSES
    model_input_side: int = 640
    max_candidates: int = 50
    # Boxes whose clamped width or height is not above this are dropped at decode.
    min_box_extent: float = 0.01
    # False: stop at the first `max_candidates` anchors scanned.
    # True: keep the `max_candidates` most confident anchors.
    cap_by_confidence: bool = False

    def __post_init__(self) -> None:
        conf = clamp_threshold(self.confidence_threshold, _DEFAULT_CONFIDENCE)
        iou = clamp_threshold(self.iou_threshold, _DEFAULT_IOU)
        if conf != self.confidence_threshold or iou != self.iou_threshold:
            logger.debug(
                "Clamped thresholds: confidence %r -> %s, iou %r -> %s",
                self.confidence_threshold,
                conf,
                self.iou_threshold,
                iou,
            )
        # Frozen dataclass: normalize through object.__setattr__.
        object.__setattr__(self, "confidence_threshold", conf)
        object.__setattr__(self, "iou_threshold", iou)
        object.__setattr__(self, "class_names", tuple(str(n) for n in self.class_names))

        if not self.class_names:
            raise ValueError("class_names must not be empty")
        if isinstance(self.model_input_side, bool) or int(self.model_input_side) <= 0:
            raise ValueError("model_input_side must be > 0")
        if isinstance(self.max_candidates, bool) or int(self.max_candidates) < 1:
            raise ValueError("max_candidates must be >= 1")
        if not (0.0 <= float(self.min_box_extent) < 1.0):
            raise ValueError("min_box_extent must be in [0, 1)")

    @property
    def num_classes(self) -> int:
        return len(self.class_names)

    @property
    def expected_channels(self) -> int:
        return 4 + self.num_classes

    def with_thresholds(self, confidence: Optional[float] = None, iou: Optional[float] = None) -> "DetectionConfig":
        return replace(
            self,
            confidence_threshold=self.confidence_threshold if confidence is None else confidence,
            iou_threshold=self.iou_threshold if iou is None else iou,
        )


def _require_number(payload: Dict[str, Any], key: str) -> float:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Dict[str, Any], key: str) -> int:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _require_names(value: Any) -> Sequence[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError("class_names must be a list of strings")
    return value


def load_detection_config(path: Path) -> DetectionConfig:
    """
    Load a `DetectionConfig` from JSON.

    Every key is optional; omitted keys keep their defaults. Class names come
    either inline (`class_names`) or from a metadata.yaml (`class_names_path`,
    relative to the JSON file).
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Detection config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid detection config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Detection config must be a JSON object")

    allowed = {
        "confidence_threshold",
        "iou_threshold",
        "class_names",
        "class_names_path",
        "model_input_side",
        "max_candidates",
        "min_box_extent",
        "cap_by_confidence",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown detection config keys: {unknown}")
    if "class_names" in payload and "class_names_path" in payload:
        raise ValueError("Use either class_names or class_names_path, not both")

    kwargs: Dict[str, Any] = {}
    for key in ("confidence_threshold", "iou_threshold", "min_box_extent"):
        if key in payload:
            kwargs[key] = _require_number(payload, key)
    for key in ("model_input_side", "max_candidates"):
        if key in payload:
            kwargs[key] = _require_int(payload, key)
    if "cap_by_confidence" in payload:
        if not isinstance(payload["cap_by_confidence"], bool):
            raise ValueError("cap_by_confidence must be a boolean")
        kwargs["cap_by_confidence"] = payload["cap_by_confidence"]
    if "class_names" in payload:
        kwargs["class_names"] = tuple(_require_names(payload["class_names"]))
    if "class_names_path" in payload:
        names_path = payload["class_names_path"]
        if not isinstance(names_path, str):
            raise ValueError("class_names_path must be a string")
        resolved = Path(names_path)
        if not resolved.is_absolute():
            resolved = path.parent / resolved
        kwargs["class_names"] = class_names_from_mapping(load_class_names(str(resolved)))

    return DetectionConfig(**kwargs)
