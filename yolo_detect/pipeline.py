from __future__ import annotations

import logging
import math
from typing import Any, List, Optional

import numpy as np

from .config import DetectionConfig
from .decode import TensorDecoder
from .nms import NonMaxSuppressor
from .types import Candidate, Detection, ModelOutput, NormalizedRect, Observation, ObservationOutput, TensorOutput

logger = logging.getLogger(__name__)


def as_model_output(raw: Any) -> Optional[ModelOutput]:
    """
    Wrap whatever an inference call returned into a `ModelOutput`.

    - TensorOutput / ObservationOutput: returned unchanged
    - np.ndarray: treated as a dense (1, 4 + C, A) or (4 + C, A) tensor
    - list/tuple of Observation or (label, confidence, box) triples: observations

    Returns None for anything else.
    """

    if isinstance(raw, (TensorOutput, ObservationOutput)):
        return raw
    if isinstance(raw, np.ndarray):
        return TensorOutput.from_array(raw)
    if isinstance(raw, (list, tuple)):
        try:
            return ObservationOutput.from_iterable(raw)
        except (TypeError, ValueError) as exc:
            logger.debug("Not an observation list: %s", exc)
            return None
    return None


class DetectionPipeline:
    """
    Decode (when needed) -> per-class NMS, for either output representation.

    Stateless: the config is passed with every call and never modified, so one
    instance can serve concurrent frames.
    """

    def __init__(self, decoder: Optional[TensorDecoder] = None):
        self.decoder = decoder or TensorDecoder()

    def run(self, output: ModelOutput, config: DetectionConfig) -> List[Detection]:
        if isinstance(output, TensorOutput):
            candidates = self.decoder.decode(output, config)
        elif isinstance(output, ObservationOutput):
            candidates = self._observation_candidates(output, config)
        else:
            logger.warning("Unrecognized model output type: %s", type(output).__name__)
            return []

        if not candidates:
            return []

        detections = NonMaxSuppressor(config.class_names).suppress(candidates, config.iou_threshold)
        logger.debug("Kept %d of %d candidates after NMS", len(detections), len(candidates))
        return detections

    def _observation_candidates(self, output: ObservationOutput, config: DetectionConfig) -> List[Candidate]:
        candidates: List[Candidate] = []
        for obs in output.observations:
            if not isinstance(obs, Observation):
                logger.warning("Skipping malformed observation: %r", obs)
                continue
            try:
                conf = float(obs.confidence)
            except (TypeError, ValueError):
                logger.warning("Skipping observation with non-numeric confidence: %r", obs)
                continue
            if not isinstance(obs.box, NormalizedRect):
                logger.warning("Skipping observation without a NormalizedRect box: %r", obs)
                continue
            if math.isnan(conf) or conf < config.confidence_threshold:
                continue
            candidates.append(Candidate(class_index=-1, confidence=conf, box=obs.box, label=str(obs.label)))
        return candidates


_DEFAULT_PIPELINE = DetectionPipeline()


def run_pipeline(output: ModelOutput, config: DetectionConfig) -> List[Detection]:
    return _DEFAULT_PIPELINE.run(output, config)
