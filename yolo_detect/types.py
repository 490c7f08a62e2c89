from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple, Union

import numpy as np


@dataclass(frozen=True)
class NormalizedRect:
    """
    Axis-aligned box in image-fraction coordinates.

    (x, y) is the top-left corner; width/height are extents. All four values
    are expected in [0, 1].
    """

    x: float
    y: float
    width: float
    height: float

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.x + self.width, self.y + self.height

    def to_pixels(self, image_width: int, image_height: int) -> Tuple[int, int, int, int]:
        """
        Map to integer xyxy pixel coordinates for an image of the given size.
        """

        x1, y1, x2, y2 = self.as_xyxy()
        return (
            int(round(x1 * image_width)),
            int(round(y1 * image_height)),
            int(round(min(x2, 1.0) * image_width)),
            int(round(min(y2, 1.0) * image_height)),
        )


@dataclass(frozen=True)
class Candidate:
    """
    Detection before overlap suppression.

    `label` is only set for candidates built from pre-boxed observations; the
    suppressor then groups by that label instead of looking up `class_index`.
    """

    class_index: int
    confidence: float
    box: NormalizedRect
    label: Optional[str] = None


@dataclass(frozen=True)
class Detection:
    label: str
    confidence: float
    box: NormalizedRect

    def as_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "confidence": float(self.confidence),
            "box": [float(self.box.x), float(self.box.y), float(self.box.width), float(self.box.height)],
        }


@dataclass(frozen=True)
class Observation:
    label: str
    confidence: float
    box: NormalizedRect


@dataclass(frozen=True)
class TensorOutput:
    """
    Raw detection tensor as produced by the inference engine.

    - data: flat float buffer (anything `np.asarray` accepts)
    - shape: declared shape, expected (1, 4 + C, A)
    - strides: per-dimension strides in elements, not bytes
    """

    data: Any
    shape: Tuple[int, ...]
    strides: Tuple[int, ...]

    @classmethod
    def from_array(cls, array: np.ndarray) -> "TensorOutput":
        arr = np.asarray(array, dtype=np.float32)
        if arr.ndim == 2:
            arr = arr[None, ...]
        arr = np.ascontiguousarray(arr)
        shape = tuple(int(d) for d in arr.shape)
        # C-order element strides from the shape; NumPy may report 0 for size-1 axes.
        strides = []
        step = 1
        for dim in reversed(shape):
            strides.insert(0, step)
            step *= max(dim, 1)
        return cls(data=arr.reshape(-1), shape=shape, strides=tuple(strides))


@dataclass(frozen=True)
class ObservationOutput:
    observations: Tuple[Observation, ...]

    @classmethod
    def from_iterable(cls, items: Iterable[Any]) -> "ObservationOutput":
        """
        Build from `Observation`s or plain (label, confidence, box) triples.
        """

        out = []
        for item in items:
            if isinstance(item, Observation):
                out.append(item)
                continue
            label, confidence, box = item
            if not isinstance(box, NormalizedRect):
                box = NormalizedRect(*(float(v) for v in box))
            out.append(Observation(label=str(label), confidence=float(confidence), box=box))
        return cls(observations=tuple(out))


ModelOutput = Union[TensorOutput, ObservationOutput]
