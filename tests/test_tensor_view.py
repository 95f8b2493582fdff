import unittest

import numpy as np

from rknn_kit.errors import IndexOutOfRange, InvalidTensorShape
from rknn_kit.tensor_view import TensorView
from rknn_kit.types import TensorDescriptor


class TestTensorView(unittest.TestCase):
    def test_row_major_offsets(self) -> None:
        data = np.arange(2 * 3 * 4 * 5, dtype=np.int16).astype(np.int8)
        view = TensorView(data.tobytes(), (2, 3, 4, 5))
        self.assertEqual(view.get(0, 0, 0, 0), 0)
        self.assertEqual(view.get(0, 0, 1, 2), 7)
        self.assertEqual(view.get(0, 2, 3, 4), 59)
        self.assertEqual(view.get(1, 0, 0, 1), 61)
        self.assertEqual(view.offset(1, 2, 3, 4), 119)

    def test_missing_leading_dims_are_one(self) -> None:
        data = np.arange(6, dtype=np.int8)
        view = TensorView(data, (2, 3))
        self.assertEqual(view.shape, (1, 1, 2, 3))
        self.assertEqual(view.get(0, 0, 1, 2), 5)

    def test_negative_values_read_as_int8(self) -> None:
        view = TensorView(bytes([0xFF, 0x80, 0x7F]), (3,))
        self.assertEqual([view.get(0, 0, 0, w) for w in range(3)], [-1, -128, 127])

    def test_uint8_array_reinterpreted(self) -> None:
        view = TensorView(np.array([200, 1], dtype=np.uint8), (2,))
        self.assertEqual(view.get(0, 0, 0, 0), -56)

    def test_out_of_range_coordinates(self) -> None:
        view = TensorView(np.zeros(24, dtype=np.int8), (1, 2, 3, 4))
        for coords in [(1, 0, 0, 0), (0, 2, 0, 0), (0, 0, 3, 0), (0, 0, 0, 4), (0, -1, 0, 0)]:
            with self.assertRaises(IndexOutOfRange):
                view.get(*coords)
        with self.assertRaises(IndexError):
            view.get(0, 0, 0, 4)

    def test_short_buffer_rejected(self) -> None:
        with self.assertRaises(IndexOutOfRange):
            TensorView(bytes(10), (1, 1, 3, 4))

    def test_longer_buffer_tolerated(self) -> None:
        view = TensorView(bytes(range(16)), (1, 1, 3, 4))
        self.assertEqual(view.get(0, 0, 2, 3), 11)

    def test_too_many_dims_rejected(self) -> None:
        with self.assertRaises(IndexOutOfRange):
            TensorView(bytes(32), (1, 2, 2, 2, 4))
        with self.assertRaises(IndexOutOfRange):
            TensorDescriptor(dims=(1, 2, 2, 2, 4))

    def test_wide_dtype_rejected(self) -> None:
        with self.assertRaises(InvalidTensorShape):
            TensorView(np.zeros(4, dtype=np.float32), (4,))

    def test_views_do_not_copy(self) -> None:
        data = np.arange(24, dtype=np.int8).reshape(1, 2, 3, 4)
        view = TensorView(data, data.shape)
        plane = view.plane(0, 1)
        self.assertEqual(plane.shape, (3, 4))
        self.assertTrue(np.shares_memory(plane, data))
        self.assertEqual(int(plane[2, 3]), 23)
        self.assertFalse(plane.flags.writeable)
        self.assertTrue(np.shares_memory(view.channels(0, 0, 2), data))

    def test_channel_range_checked(self) -> None:
        view = TensorView(np.zeros(24, dtype=np.int8), (1, 2, 3, 4))
        with self.assertRaises(IndexOutOfRange):
            view.channels(0, 0, 3)
        with self.assertRaises(IndexOutOfRange):
            view.plane(0, 2)


if __name__ == "__main__":
    unittest.main()
