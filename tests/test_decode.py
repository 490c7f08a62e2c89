import unittest

import numpy as np

from yolo_detect.config import DetectionConfig
from yolo_detect.decode import TensorDecoder, decode_tensor
from yolo_detect.types import TensorOutput


def make_tensor(num_classes: int, anchors: int) -> np.ndarray:
    return np.zeros((1, 4 + num_classes, anchors), dtype=np.float32)


def set_anchor(t: np.ndarray, anchor: int, box, scores) -> None:
    t[0, 0:4, anchor] = box
    for cls, score in scores.items():
        t[0, 4 + cls, anchor] = score


class TestTensorDecoder(unittest.TestCase):
    def setUp(self) -> None:
        self.cfg = DetectionConfig()
        self.decoder = TensorDecoder()

    def test_decode_converts_center_pixels_to_normalized_corner_box(self) -> None:
        t = make_tensor(80, 4)
        set_anchor(t, 2, (320, 240, 64, 128), {5: 0.9})
        out = self.decoder.decode(TensorOutput.from_array(t), self.cfg)
        self.assertEqual(len(out), 1)
        cand = out[0]
        self.assertEqual(cand.class_index, 5)
        self.assertAlmostEqual(cand.confidence, 0.9, places=6)
        self.assertAlmostEqual(cand.box.x, 0.45)
        self.assertAlmostEqual(cand.box.y, 0.275)
        self.assertAlmostEqual(cand.box.width, 0.1)
        self.assertAlmostEqual(cand.box.height, 0.2)
        self.assertIsNone(cand.label)

    def test_argmax_tie_picks_lowest_class_index(self) -> None:
        t = make_tensor(80, 1)
        set_anchor(t, 0, (100, 100, 50, 50), {7: 0.6, 3: 0.6, 40: 0.6})
        out = self.decoder.decode(TensorOutput.from_array(t), self.cfg)
        self.assertEqual([c.class_index for c in out], [3])

    def test_confidence_threshold_is_inclusive(self) -> None:
        t = make_tensor(80, 3)
        set_anchor(t, 0, (100, 100, 50, 50), {0: 0.25})
        set_anchor(t, 1, (300, 300, 50, 50), {0: 0.2499})
        set_anchor(t, 2, (500, 500, 50, 50), {0: 0.7})
        out = self.decoder.decode(TensorOutput.from_array(t), self.cfg)
        self.assertEqual(len(out), 2)
        self.assertTrue(all(c.confidence >= self.cfg.confidence_threshold for c in out))

    def test_partially_out_of_frame_box_is_clamped_not_rejected(self) -> None:
        t = make_tensor(80, 1)
        set_anchor(t, 0, (10, 630, 40, 80), {0: 0.8})
        out = self.decoder.decode(TensorOutput.from_array(t), self.cfg)
        self.assertEqual(len(out), 1)
        box = out[0].box
        self.assertEqual(box.x, 0.0)
        self.assertAlmostEqual(box.y, (630 - 40) / 640)
        self.assertAlmostEqual(box.width, 40 / 640)
        self.assertAlmostEqual(box.height, 80 / 640)

    def test_oversized_extent_is_clamped_to_one(self) -> None:
        t = make_tensor(80, 1)
        set_anchor(t, 0, (320, 320, 1280, 1280), {0: 0.8})
        out = self.decoder.decode(TensorOutput.from_array(t), self.cfg)
        self.assertEqual(out[0].box.width, 1.0)
        self.assertEqual(out[0].box.height, 1.0)
        self.assertEqual(out[0].box.x, 0.0)

    def test_degenerate_boxes_are_dropped(self) -> None:
        t = make_tensor(80, 3)
        set_anchor(t, 0, (100, 100, 5, 50), {0: 0.9})  # width 5/640 < 0.01
        set_anchor(t, 1, (100, 100, 50, 0), {0: 0.9})
        set_anchor(t, 2, (100, 100, 50, 50), {0: 0.9})
        out = self.decoder.decode(TensorOutput.from_array(t), self.cfg)
        self.assertEqual(len(out), 1)
        for cand in out:
            self.assertGreater(cand.box.width, self.cfg.min_box_extent)
            self.assertGreater(cand.box.height, self.cfg.min_box_extent)

    def test_nan_scores_and_coordinates_never_survive(self) -> None:
        t = make_tensor(80, 3)
        set_anchor(t, 0, (100, 100, 50, 50), {0: np.nan, 1: 0.8})
        set_anchor(t, 1, (np.nan, 100, 50, 50), {0: 0.9})
        set_anchor(t, 2, (100, 100, 50, 50), {0: np.nan})
        out = self.decoder.decode(TensorOutput.from_array(t), self.cfg)
        self.assertEqual([(c.class_index, round(c.confidence, 3)) for c in out], [(1, 0.8)])

    def test_strides_are_taken_from_the_tensor(self) -> None:
        channel_major = make_tensor(80, 6)
        set_anchor(channel_major, 1, (200, 200, 60, 60), {2: 0.5})
        set_anchor(channel_major, 4, (500, 100, 80, 40), {9: 0.95})

        # Same values stored anchor-major: element (c, a) at c * 1 + a * 84.
        anchor_major = np.ascontiguousarray(channel_major[0].T).reshape(-1)
        strided = TensorOutput(data=anchor_major, shape=(1, 84, 6), strides=(84 * 6, 1, 84))

        expected = self.decoder.decode(TensorOutput.from_array(channel_major), self.cfg)
        got = self.decoder.decode(strided, self.cfg)
        self.assertEqual(len(expected), 2)
        self.assertEqual(got, expected)

    def test_accepts_raw_float32_bytes(self) -> None:
        t = make_tensor(80, 2)
        set_anchor(t, 1, (320, 320, 64, 64), {0: 0.6})
        tensor = TensorOutput(data=t.tobytes(), shape=(1, 84, 2), strides=(168, 2, 1))
        out = decode_tensor(tensor, self.cfg)
        self.assertEqual(len(out), 1)

    def test_scan_order_cap_keeps_first_anchors(self) -> None:
        t = make_tensor(80, 5)
        for a, score in enumerate([0.3, 0.4, 0.5, 0.6, 0.9]):
            set_anchor(t, a, (60 + a * 120, 320, 50, 50), {0: score})
        cfg = DetectionConfig(max_candidates=2)
        out = self.decoder.decode(TensorOutput.from_array(t), cfg)
        self.assertEqual([round(c.confidence, 2) for c in out], [0.3, 0.4])

    def test_confidence_cap_keeps_most_confident_in_scan_order(self) -> None:
        t = make_tensor(80, 5)
        for a, score in enumerate([0.3, 0.9, 0.5, 0.6, 0.4]):
            set_anchor(t, a, (60 + a * 120, 320, 50, 50), {0: score})
        cfg = DetectionConfig(max_candidates=2, cap_by_confidence=True)
        out = self.decoder.decode(TensorOutput.from_array(t), cfg)
        self.assertEqual([round(c.confidence, 2) for c in out], [0.9, 0.6])

    def test_model_input_side_is_configurable(self) -> None:
        t = make_tensor(80, 1)
        set_anchor(t, 0, (160, 160, 64, 64), {0: 0.9})
        out = self.decoder.decode(TensorOutput.from_array(t), DetectionConfig(model_input_side=320))
        self.assertAlmostEqual(out[0].box.x, 0.4)
        self.assertAlmostEqual(out[0].box.width, 0.2)

    def test_custom_class_table_sets_expected_channels(self) -> None:
        cfg = DetectionConfig(class_names=("cat", "dog"))
        t = make_tensor(2, 3)
        set_anchor(t, 0, (100, 100, 50, 50), {1: 0.7})
        out = self.decoder.decode(TensorOutput.from_array(t), cfg)
        self.assertEqual([c.class_index for c in out], [1])

    def test_channel_mismatch_returns_empty_and_warns(self) -> None:
        tensor = TensorOutput.from_array(np.zeros((1, 50, 100), dtype=np.float32))
        with self.assertLogs("yolo_detect.decode", level="WARNING") as logs:
            out = self.decoder.decode(tensor, self.cfg)
        self.assertEqual(out, [])
        self.assertIn("Channel mismatch", logs.output[0])

    def test_wrong_rank_returns_empty(self) -> None:
        data = np.zeros(84 * 10, dtype=np.float32)
        tensor = TensorOutput(data=data, shape=(84, 10), strides=(10, 1))
        with self.assertLogs("yolo_detect.decode", level="WARNING"):
            self.assertEqual(self.decoder.decode(tensor, self.cfg), [])

    def test_batch_greater_than_one_returns_empty(self) -> None:
        tensor = TensorOutput.from_array(np.zeros((2, 84, 10), dtype=np.float32))
        with self.assertLogs("yolo_detect.decode", level="WARNING"):
            self.assertEqual(self.decoder.decode(tensor, self.cfg), [])

    def test_buffer_smaller_than_declared_shape_returns_empty(self) -> None:
        data = np.zeros(84 * 10, dtype=np.float32)
        tensor = TensorOutput(data=data, shape=(1, 84, 20), strides=(84 * 20, 20, 1))
        with self.assertLogs("yolo_detect.decode", level="WARNING") as logs:
            self.assertEqual(self.decoder.decode(tensor, self.cfg), [])
        self.assertIn("Buffer too small", logs.output[0])

    def test_missing_strides_return_empty(self) -> None:
        data = np.zeros(84 * 10, dtype=np.float32)
        tensor = TensorOutput(data=data, shape=(1, 84, 10), strides=(840, 10))
        with self.assertLogs("yolo_detect.decode", level="WARNING"):
            self.assertEqual(self.decoder.decode(tensor, self.cfg), [])

    def test_zero_anchors_returns_empty(self) -> None:
        tensor = TensorOutput.from_array(np.zeros((1, 84, 0), dtype=np.float32))
        self.assertEqual(self.decoder.decode(tensor, self.cfg), [])


if __name__ == "__main__":
    unittest.main()
