from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import DetectionConfig
from .letterbox import letterbox
from .pipeline import DetectionPipeline, as_model_output
from .types import Detection

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    orig_size: Tuple[int, int]


class FramePipeline:
    """
    Frame in, detections out: resize -> inference -> decode/NMS.

    `infer_fn` receives a (1, 3, S, S) float32 RGB blob in [0, 1] and may return a
    raw tensor (ndarray or TensorOutput) or pre-boxed observations. Boxes in the
    result are normalized to the original frame.
    """

    def __init__(
        self,
        infer_fn: Callable[[np.ndarray], Any],
        config: DetectionConfig = DetectionConfig(),
        *,
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
    ):
        self._infer_fn = infer_fn
        self.config = config
        self.backend = backend
        self.backend_name = backend_name
        self.pipeline = DetectionPipeline()

    def preprocess(self, image_bgr: np.ndarray) -> PreprocessResult:
        if image_bgr is None or not hasattr(image_bgr, "shape"):
            raise TypeError("image_bgr must be a NumPy array (BGR).")
        if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
            raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

        orig_h, orig_w = image_bgr.shape[:2]
        img, _, _ = letterbox(image_bgr, side=self.config.model_input_side, scale_fill=True)

        # BGR -> RGB, normalize, HWC -> CHW, add batch
        blob = img[:, :, ::-1].astype(np.float32) / 255.0
        blob = np.ascontiguousarray(np.transpose(blob, (2, 0, 1))[None, ...])

        return PreprocessResult(blob=blob, orig_size=(orig_w, orig_h))

    def __call__(self, image_bgr: np.ndarray, config: Optional[DetectionConfig] = None) -> List[Detection]:
        cfg = config or self.config
        prep = self.preprocess(image_bgr)
        raw = self._infer_fn(prep.blob)
        output = as_model_output(raw)
        if output is None:
            logger.warning("Inference returned an unsupported result: %s", type(raw).__name__)
            return []
        return self.pipeline.run(output, cfg)


def load_frame_pipeline(
    model_path: PathLike,
    config: DetectionConfig = DetectionConfig(),
    *,
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
    onnx_output_name: Optional[str] = None,
) -> FramePipeline:
    """
    Create a `FramePipeline` for an ONNX model on disk.

        pipe = load_frame_pipeline("models/yolo11n.onnx")
        detections = pipe(frame_bgr)
    """

    resolved = Path(model_path).expanduser().resolve()
    suffix = resolved.suffix.lower()
    if suffix != ".onnx":
        raise ValueError(f"Unsupported model format '{suffix}'; export the model to ONNX.")

    from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

    ort_backend = OnnxRuntimeBackend(
        resolved,
        OnnxRuntimeBackendConfig(
            providers=onnx_providers,
            input_name=onnx_input_name,
            output_name=onnx_output_name,
        ),
    )
    logger.info("Loaded %s with providers %s", resolved.name, ", ".join(ort_backend.providers_in_use))
    return FramePipeline(ort_backend.infer, config, backend=ort_backend, backend_name="onnxruntime")
