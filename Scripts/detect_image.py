from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

import cv2

from yolo_detect import DetectionConfig, draw_detections, load_detection_config, load_frame_pipeline


def read_image(path: str):
    img = cv2.imread(path)
    if img is None:
        raise FileNotFoundError(f"Could not read image at path: {path}")
    return img


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a YOLO ONNX model on one image and print detections.")
    parser.add_argument("image", help="Path to the input image.")
    parser.add_argument("--model", default="Models/yolo11n.onnx", help="Path to an ONNX model.")
    parser.add_argument("--config", default=None, help="Optional detection config JSON.")
    parser.add_argument("--conf", type=float, default=None, help="Override confidence threshold.")
    parser.add_argument("--iou", type=float, default=None, help="Override IoU threshold.")
    parser.add_argument("--output", default=None, help="Write an annotated copy of the image here.")
    parser.add_argument("--json", action="store_true", help="Print detections as JSON.")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING...).")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = load_detection_config(Path(args.config)) if args.config else DetectionConfig()
    config = config.with_thresholds(confidence=args.conf, iou=args.iou)

    onnx_providers = None
    if args.onnx_providers:
        onnx_providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]

    pipeline = load_frame_pipeline(args.model, config, onnx_providers=onnx_providers)
    image = read_image(args.image)
    detections = pipeline(image)

    if args.json:
        print(json.dumps([det.as_dict() for det in detections], indent=2))
    else:
        for det in detections:
            print(f"{det.label:<16} {det.confidence:.3f} {det.box.as_xyxy()}")

    if args.output:
        vis = draw_detections(image, detections)
        if not cv2.imwrite(args.output, vis):
            raise RuntimeError(f"Could not write image: {args.output}")
        logging.getLogger(__name__).info("Wrote %s", args.output)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
