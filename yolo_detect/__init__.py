"""
Post-processing for single-pass YOLO-style detectors.

Turns the raw (1, 4 + C, A) output tensor, or a list of pre-boxed
observations, into a deduplicated, confidence-ordered list of labeled boxes in
normalized image coordinates. Core decoding and NMS need only NumPy; OpenCV is
used for resizing and drawing, ONNX Runtime optionally for inference.
"""

from .types import Candidate, Detection, ModelOutput, NormalizedRect, Observation, ObservationOutput, TensorOutput
from .config import COCO_CLASSES, UNKNOWN_LABEL, DetectionConfig, clamp_threshold, load_detection_config, resolve_label
from .metadata import class_names_from_mapping, load_class_names
from .decode import TensorDecoder, decode_tensor
from .nms import NonMaxSuppressor, box_iou, iou_matrix, nms
from .pipeline import DetectionPipeline, as_model_output, run_pipeline
from .letterbox import letterbox
from .runtime import FramePipeline, load_frame_pipeline
from .visualize import draw_detections

__all__ = [
    "Candidate",
    "Detection",
    "ModelOutput",
    "NormalizedRect",
    "Observation",
    "ObservationOutput",
    "TensorOutput",
    "COCO_CLASSES",
    "UNKNOWN_LABEL",
    "DetectionConfig",
    "clamp_threshold",
    "load_detection_config",
    "resolve_label",
    "class_names_from_mapping",
    "load_class_names",
    "TensorDecoder",
    "decode_tensor",
    "NonMaxSuppressor",
    "box_iou",
    "iou_matrix",
    "nms",
    "DetectionPipeline",
    "as_model_output",
    "run_pipeline",
    "letterbox",
    "FramePipeline",
    "load_frame_pipeline",
    "draw_detections",
]
