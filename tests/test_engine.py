import tempfile
import unittest
from pathlib import Path

import numpy as np

from rknn_kit.config import PostProcessConfig
from rknn_kit.engine import RecordedEngine, query_output_descriptors, run_engine
from rknn_kit.errors import IndexOutOfRange, UnsupportedQuantType
from rknn_kit.types import Detection, QuantKind, TensorDescriptor, TensorKind


def _capture(input_height: int = 64) -> RecordedEngine:
    outputs = []
    descriptors = []
    for grid in (2, 4, 1):
        box = np.zeros((1, 4, grid, grid), dtype=np.int8)
        score = np.zeros((1, 3, grid, grid), dtype=np.int8)
        score_sum = np.full((1, 1, grid, grid), -128, dtype=np.int8)
        for arr, zp, scale in ((box, 0, 0.25), (score, -128, 1.0 / 256), (score_sum, -128, 1.0 / 256)):
            descriptors.append(TensorDescriptor(dims=arr.shape, zero_point=zp, scale=scale, index=len(outputs)))
            outputs.append(arr)

    # branch 0, cell (1, 0): class 2 at q 64 -> (64 + 128) / 256 = 0.75
    outputs[2][0, 0, 1, 0] = 100
    outputs[1][0, :, 1, 0] = [-100, 10, 64]
    outputs[0][0, :, 1, 0] = [2, 2, 2, 2]  # 0.5 cells each side
    input_desc = TensorDescriptor(dims=(1, 3, input_height, input_height), quant_kind=QuantKind.NONE, index=0)
    return RecordedEngine(input_desc, descriptors, outputs)


class TestRecordedEngine(unittest.TestCase):
    def test_engine_contract(self) -> None:
        engine = _capture()
        self.assertEqual(engine.query_io_counts(), (1, 9))
        self.assertEqual(engine.query_tensor_attrs(TensorKind.INPUT, 0).dims4[2], 64)
        self.assertEqual(engine.query_tensor_attrs(TensorKind.OUTPUT, 4).dims, (1, 3, 4, 4))
        self.assertEqual(len(engine.get_output_buffers()), 9)
        self.assertEqual(len(query_output_descriptors(engine)), 9)
        with self.assertRaises(IndexOutOfRange):
            engine.query_tensor_attrs(TensorKind.OUTPUT, 9)
        with self.assertRaises(IndexOutOfRange):
            engine.query_tensor_attrs(TensorKind.INPUT, 1)

    def test_run_engine(self) -> None:
        dets = run_engine(_capture(), PostProcessConfig(conf_threshold=0.5, iou_threshold=0.5))
        # stride 32; x1 = (-0.5 + 0 + 0.5) * 32 = 0, y1 = (-0.5 + 1 + 0.5) * 32 = 32
        self.assertEqual(dets, [Detection(class_id=2, confidence=0.75, box=(0, 32, 32, 32))])

    def test_input_height_override(self) -> None:
        dets = run_engine(_capture(), PostProcessConfig(), input_height=128)
        self.assertEqual(dets[0].box, (0, 64, 64, 64))

    def test_npz_capture_replays_identically(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "capture.npz"
        engine = _capture()
        engine.save_npz(path)

        loaded = RecordedEngine.from_npz(path)
        self.assertEqual(loaded.query_io_counts(), (1, 9))
        self.assertEqual(loaded.query_tensor_attrs(TensorKind.OUTPUT, 1).zero_point, -128)
        self.assertEqual(run_engine(loaded), run_engine(engine))

    def test_npz_unknown_quant_code(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "capture.npz"
        np.savez(
            path,
            zero_points=np.array([0], dtype=np.int32),
            scales=np.array([1.0], dtype=np.float32),
            quant_types=np.array([9], dtype=np.int32),
            input_dims=np.array([1, 3, 64, 64]),
            output_0=np.zeros((1, 4, 2, 2), dtype=np.int8),
        )
        with self.assertRaises(UnsupportedQuantType):
            RecordedEngine.from_npz(path)

    def test_npz_missing_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            RecordedEngine.from_npz(Path(tempfile.gettempdir()) / "missing-rknn-kit-capture.npz")


class TestQuantKind(unittest.TestCase):
    def test_from_code(self) -> None:
        self.assertIs(QuantKind.from_code(2), QuantKind.AFFINE_ASYMMETRIC)
        self.assertIs(QuantKind.from_code(0), QuantKind.NONE)
        with self.assertRaises(UnsupportedQuantType):
            QuantKind.from_code(3)


if __name__ == "__main__":
    unittest.main()
