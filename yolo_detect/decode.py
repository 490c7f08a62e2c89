from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np
from numpy.lib.stride_tricks import as_strided

from .config import DetectionConfig
from .types import Candidate, NormalizedRect, TensorOutput

logger = logging.getLogger(__name__)


class TensorDecoder:
    """
    Decode a raw (1, 4 + C, A) detection tensor into candidates.

    Channel layout per anchor:
    - 0..3: cx, cy, w, h in model-input pixels (square input of side S)
    - 4..4+C-1: per-class scores in [0, 1]

    Element (c, a) lives at `c * strides[1] + a * strides[2]` in the flat
    buffer; strides are always taken from the tensor, never assumed.

    Malformed tensors decode to an empty list and a warning is logged; a bad
    frame must not take down the caller's frame loop.
    """

    def decode(self, tensor: TensorOutput, config: DetectionConfig) -> List[Candidate]:
        grid = self._channel_view(tensor, config)
        if grid is None:
            return []

        num_anchors = grid.shape[1]
        if num_anchors == 0:
            return []

        boxes = grid[0:4, :].astype(np.float64)
        class_scores = grid[4:, :].astype(np.float64)
        # NaN never wins the argmax; ties go to the lowest class index.
        class_scores = np.where(np.isnan(class_scores), -np.inf, class_scores)
        class_ids = np.argmax(class_scores, axis=0)
        scores = class_scores[class_ids, np.arange(num_anchors)]

        keep = scores >= config.confidence_threshold
        if not np.any(keep):
            logger.debug("No anchors above confidence %.3f", config.confidence_threshold)
            return []

        # cxcywh (pixels) -> normalized top-left xywh, each field clamped on its own.
        side = float(config.model_input_side)
        cx, cy, w_box, h_box = boxes
        with np.errstate(invalid="ignore"):
            x = np.clip((cx - w_box / 2) / side, 0.0, 1.0)
            y = np.clip((cy - h_box / 2) / side, 0.0, 1.0)
            w_norm = np.clip(w_box / side, 0.0, 1.0)
            h_norm = np.clip(h_box / side, 0.0, 1.0)

            extent = config.min_box_extent
            keep &= (w_norm > extent) & (h_norm > extent)
            keep &= np.isfinite(x) & np.isfinite(y)

        idx = np.flatnonzero(keep)
        idx = self._apply_cap(idx, scores, config)

        candidates = [
            Candidate(
                class_index=int(class_ids[i]),
                confidence=float(scores[i]),
                box=NormalizedRect(float(x[i]), float(y[i]), float(w_norm[i]), float(h_norm[i])),
            )
            for i in idx
        ]
        logger.debug("Decoded %d candidates from %d anchors", len(candidates), num_anchors)
        return candidates

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _channel_view(self, tensor: TensorOutput, config: DetectionConfig) -> Optional[np.ndarray]:
        """
        Validate the declared geometry and return a (4 + C, A) strided view.
        """

        shape = tuple(tensor.shape) if tensor.shape is not None else ()
        strides = tuple(tensor.strides) if tensor.strides is not None else ()

        if len(shape) != 3:
            logger.warning("Expected a 3-D detection tensor, got shape %s", shape)
            return None
        if len(strides) != 3:
            logger.warning("Expected 3 strides for shape %s, got %s", shape, strides)
            return None
        if not all(isinstance(v, (int, np.integer)) for v in (*shape, *strides)):
            logger.warning("Non-integer shape/strides: shape=%s strides=%s", shape, strides)
            return None

        batch, channels, anchors = (int(v) for v in shape)
        if batch != 1:
            logger.warning("Batch > 1 is not supported (got shape %s)", shape)
            return None
        if channels != config.expected_channels:
            logger.warning(
                "Channel mismatch: tensor has %d channels, expected %d (4 + %d classes)",
                channels,
                config.expected_channels,
                config.num_classes,
            )
            return None
        if anchors < 0:
            logger.warning("Negative anchor count in shape %s", shape)
            return None

        _, stride1, stride2 = (int(v) for v in strides)
        if stride1 < 0 or stride2 < 0:
            logger.warning("Negative strides are not supported: %s", strides)
            return None

        try:
            if isinstance(tensor.data, (bytes, bytearray, memoryview)):
                flat = np.frombuffer(tensor.data, dtype=np.float32)
            else:
                flat = np.asarray(tensor.data, dtype=np.float32).reshape(-1)
        except (TypeError, ValueError) as exc:
            logger.warning("Tensor data is not a float buffer: %s", exc)
            return None

        if anchors == 0:
            return np.empty((channels, 0), dtype=np.float32)

        last = (channels - 1) * stride1 + (anchors - 1) * stride2
        if last >= flat.size:
            logger.warning(
                "Buffer too small: %d elements for shape %s with strides %s",
                flat.size,
                shape,
                strides,
            )
            return None

        flat = np.ascontiguousarray(flat)
        item = flat.itemsize
        return as_strided(flat, shape=(channels, anchors), strides=(stride1 * item, stride2 * item), writeable=False)

    def _apply_cap(self, idx: np.ndarray, scores: np.ndarray, config: DetectionConfig) -> np.ndarray:
        limit = int(config.max_candidates)
        if idx.size <= limit:
            return idx
        if not config.cap_by_confidence:
            # Same result as stopping the anchor scan after `limit` hits.
            return idx[:limit]
        order = np.argsort(-scores[idx], kind="stable")[:limit]
        return np.sort(idx[order])


_DEFAULT_DECODER = TensorDecoder()


def decode_tensor(tensor: TensorOutput, config: DetectionConfig) -> List[Candidate]:
    return _DEFAULT_DECODER.decode(tensor, config)
