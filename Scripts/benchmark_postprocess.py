from __future__ import annotations

import argparse
import time
from typing import List

import numpy as np

from yolo_detect import DetectionConfig, DetectionPipeline, TensorDecoder, TensorOutput


def _format_timings(label: str, values_s: List[float]) -> str:
    ms = np.asarray(values_s, dtype=np.float64) * 1000.0
    p50, p95 = np.percentile(ms, [50.0, 95.0])
    return f"{label}: n={ms.size} mean={ms.mean():.3f}ms p50={p50:.3f}ms p95={p95:.3f}ms"


def synthetic_tensor(anchors: int, num_classes: int, side: int, hit_ratio: float, seed: int = 0) -> np.ndarray:
    """
    Random (1, 4 + C, A) tensor; roughly `hit_ratio` of anchors get one confident class.
    """

    rng = np.random.default_rng(seed)
    t = np.zeros((1, 4 + num_classes, anchors), dtype=np.float32)
    t[0, 0] = rng.uniform(0, side, size=anchors)
    t[0, 1] = rng.uniform(0, side, size=anchors)
    t[0, 2] = rng.uniform(8, side / 4, size=anchors)
    t[0, 3] = rng.uniform(8, side / 4, size=anchors)
    t[0, 4:] = rng.uniform(0.0, 0.1, size=(num_classes, anchors))
    hits = rng.random(anchors) < hit_ratio
    cls = rng.integers(0, num_classes, size=anchors)
    t[0, 4 + cls[hits], np.flatnonzero(hits)] = rng.uniform(0.3, 1.0, size=int(hits.sum()))
    return t


def main() -> int:
    parser = argparse.ArgumentParser(description="Benchmark per-frame decode + NMS latency on synthetic tensors.")
    parser.add_argument("--anchors", type=int, default=8400, help="Anchor count A.")
    parser.add_argument("--imgsz", type=int, default=640, help="Model input side S.")
    parser.add_argument("--hit-ratio", type=float, default=0.02, help="Fraction of anchors above threshold.")
    parser.add_argument("--conf", type=float, default=0.25, help="Confidence threshold.")
    parser.add_argument("--iou", type=float, default=0.45, help="IoU threshold for NMS.")
    parser.add_argument("--max-candidates", type=int, default=50, help="Decode cap.")
    parser.add_argument("--cap-by-confidence", action="store_true", help="Cap to the most confident anchors.")
    parser.add_argument("--warmup", type=int, default=10, help="Warmup iterations to run but not record.")
    parser.add_argument("--iterations", type=int, default=200, help="Recorded iterations.")
    args = parser.parse_args()

    if args.anchors < 1:
        raise ValueError("--anchors must be >= 1")
    if args.iterations < 1:
        raise ValueError("--iterations must be >= 1")
    if args.warmup < 0:
        raise ValueError("--warmup must be >= 0")

    config = DetectionConfig(
        confidence_threshold=args.conf,
        iou_threshold=args.iou,
        model_input_side=args.imgsz,
        max_candidates=args.max_candidates,
        cap_by_confidence=args.cap_by_confidence,
    )
    tensor = TensorOutput.from_array(
        synthetic_tensor(args.anchors, config.num_classes, args.imgsz, args.hit_ratio)
    )
    decoder = TensorDecoder()
    pipeline = DetectionPipeline(decoder)

    t_decode: List[float] = []
    t_total: List[float] = []
    kept = 0
    for i in range(args.warmup + args.iterations):
        t0 = time.perf_counter()
        decoder.decode(tensor, config)
        t1 = time.perf_counter()
        detections = pipeline.run(tensor, config)
        t2 = time.perf_counter()
        if i < args.warmup:
            continue
        t_decode.append(t1 - t0)
        t_total.append(t2 - t1)
        kept = len(detections)

    print(_format_timings("decode", t_decode))
    print(_format_timings("decode_plus_nms", t_total))
    print(f"anchors={args.anchors} classes={config.num_classes} detections_last_frame={kept}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
