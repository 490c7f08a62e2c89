from __future__ import annotations

from typing import Dict, List, Sequence

import numpy as np

from .config import COCO_CLASSES, resolve_label
from .types import Candidate, Detection, NormalizedRect


def iou_matrix(box: np.ndarray, boxes: np.ndarray) -> np.ndarray:
    """
    IoU of one xyxy box against N xyxy boxes. Returns shape (N,).

    Disjoint boxes and zero-area unions give exactly 0.
    """

    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    if boxes.shape[0] == 0:
        return np.empty((0,), dtype=np.float64)
    box = np.asarray(box, dtype=np.float64)

    xx1 = np.maximum(box[0], boxes[:, 0])
    yy1 = np.maximum(box[1], boxes[:, 1])
    xx2 = np.minimum(box[2], boxes[:, 2])
    yy2 = np.minimum(box[3], boxes[:, 3])

    w = np.maximum(0.0, xx2 - xx1)
    h = np.maximum(0.0, yy2 - yy1)
    inter = w * h
    area = (box[2] - box[0]) * (box[3] - box[1])
    areas = (boxes[:, 2] - boxes[:, 0]) * (boxes[:, 3] - boxes[:, 1])
    union = area + areas - inter

    out = np.zeros_like(inter)
    np.divide(inter, union, out=out, where=(union > 0) & (inter > 0))
    return out


def box_iou(a: NormalizedRect, b: NormalizedRect) -> float:
    return float(iou_matrix(np.array(a.as_xyxy()), np.array([b.as_xyxy()]))[0])


def nms(boxes: np.ndarray, scores: np.ndarray, class_keys: np.ndarray, iou_threshold: float) -> np.ndarray:
    """
    Greedy per-class NMS. Expects boxes (N, 4) in xyxy, scores (N,), class_keys (N,).

    Returns indices of kept boxes, highest score first. Equal scores keep their
    input order. A box is dropped when its IoU with an already kept box of the
    same class is above `iou_threshold`.
    """

    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    if boxes.shape[0] == 0:
        return np.empty((0,), dtype=np.int64)
    scores = np.asarray(scores, dtype=np.float64)
    class_keys = np.asarray(class_keys)

    order = np.argsort(-scores, kind="stable")
    keep: List[int] = []

    while order.size > 0:
        i = order[0]
        keep.append(int(i))

        rest = order[1:]
        iou = iou_matrix(boxes[i], boxes[rest])
        suppressed = (class_keys[rest] == class_keys[i]) & (iou > iou_threshold)
        order = rest[~suppressed]

    return np.array(keep, dtype=np.int64)


class NonMaxSuppressor:
    """
    Turns candidates into final detections.

    Class identity is the resolved label: `Candidate.label` when present,
    otherwise the class table entry for `class_index` ("unknown" when out of range).
    Boxes of different classes never suppress each other.
    """

    def __init__(self, class_names: Sequence[str] = COCO_CLASSES):
        self.class_names = tuple(class_names)

    def label_for(self, candidate: Candidate) -> str:
        if candidate.label is not None:
            return candidate.label
        return resolve_label(self.class_names, candidate.class_index)

    def suppress(self, candidates: Sequence[Candidate], iou_threshold: float) -> List[Detection]:
        if not candidates:
            return []

        labels = [self.label_for(c) for c in candidates]
        codes: Dict[str, int] = {}
        class_keys = np.array([codes.setdefault(label, len(codes)) for label in labels], dtype=np.int64)
        boxes = np.array([c.box.as_xyxy() for c in candidates], dtype=np.float64)
        scores = np.array([c.confidence for c in candidates], dtype=np.float64)

        keep_idx = nms(boxes, scores, class_keys, iou_threshold)
        return [
            Detection(label=labels[i], confidence=candidates[i].confidence, box=candidates[i].box)
            for i in keep_idx
        ]
