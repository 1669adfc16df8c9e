#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Test suite for the block-streaming arithmetic driver.
"""

import unittest
import numpy as np

from raster_arith.arith.driver import (
    ArithState, ArithmeticDriver, arith, arith_raster, arith_scalar, arith_vector
)
from raster_arith.arith.errors import ArithErrorKind
from raster_arith.arith.operands import ScalarOperand
from raster_arith.core.config import RasterOptions
from raster_arith.core.io import RasterIOError, raster_from_array
from raster_arith.core.raster import Raster

NAN = np.nan


class SpyRaster(Raster):
    """In-memory raster that counts stream opens and closes."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.read_starts = 0
        self.read_stops = 0

    @classmethod
    def from_array(cls, array, **kwargs):
        template = raster_from_array(array, **kwargs)
        return cls(template.geom, values=template.values())

    def read_start(self):
        self.read_starts += 1
        super().read_start()

    def read_stop(self):
        self.read_stops += 1
        super().read_stop()


class FailingReadRaster(SpyRaster):
    """Raster whose second block cannot be read."""

    def read_block(self, plan, i):
        if i == 1:
            raise RasterIOError("read error on block 1")
        return super().read_block(plan, i)


class FailingWriteRaster(Raster):
    """Output raster that accepts one block, then fails."""

    def write_block(self, values, row, nrows, col=0, ncols=None):
        if self.blocks_written >= 1:
            self.set_error("disk full")
            return False
        return super().write_block(values, row, nrows, col, ncols)


class RecordingRaster(Raster):
    """Output raster that records the rows of every written block."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.rows_written = []

    def write_block(self, values, row, nrows, col=0, ncols=None):
        self.rows_written.append((row, nrows))
        return super().write_block(values, row, nrows, col, ncols)


class OutputSource(SpyRaster):
    """Raster whose result shell is of a given class."""

    output_class = Raster

    def geometry(self, nlyr=None):
        geom = self.geom if nlyr is None else self.geom.with_layers(nlyr)
        return self.output_class(geom)


class RecordingSource(OutputSource):
    output_class = RecordingRaster


class FailingWriteSource(OutputSource):
    output_class = FailingWriteRaster


class TestScenarios(unittest.TestCase):
    """Test the reference scenarios."""

    def test_raster_plus_scalar(self):
        """Single-layer 2x2 raster plus 10."""
        x = raster_from_array([[1, 2], [3, NAN]])
        result = arith(x, 10, "+")
        self.assertFalse(result.has_error)
        np.testing.assert_array_equal(result.values(), [[[11, 12], [13, NAN]]])

    def test_raster_divided_by_raster(self):
        x = raster_from_array([[2, 4]])
        y = raster_from_array([[3, NAN]])
        result = arith(x, y, "/")
        self.assertFalse(result.has_error)
        np.testing.assert_allclose(result.values(), [[[2 / 3, NAN]]])

    def test_vector_of_length_one(self):
        """A one-value vector is recycled to every layer."""
        data = np.arange(8, dtype=float).reshape(2, 2, 2)
        x = raster_from_array(data)
        result = arith_vector(x, [10], "*")
        self.assertEqual(result.nlyr, 2)
        np.testing.assert_array_equal(result.values(), data * 10)

    def test_unknown_operator(self):
        """An unknown symbol fails before any stream is opened."""
        x = SpyRaster.from_array([[1, 2]])
        result = arith(x, 1, "?")
        self.assertTrue(result.has_error)
        self.assertEqual(result.error_kind, ArithErrorKind.UNSUPPORTED_OPERATOR)
        self.assertEqual(x.read_starts, 0)
        self.assertIsNone(result.bs)
        self.assertFalse(result.has_values())


class TestPreconditions(unittest.TestCase):
    """Test validation of geometry and values."""

    def setUp(self):
        self.x = SpyRaster.from_array([[1, 2], [3, 4]])

    def test_dimension_mismatch(self):
        y = SpyRaster.from_array([[1, 2, 3], [4, 5, 6]], extent=(0, 2, 0, 2))
        result = arith(self.x, y, "+")
        self.assertEqual(result.error_kind, ArithErrorKind.GEOMETRY_MISMATCH)
        self.assertEqual(result.blocks_written, 0)
        self.assertEqual(self.x.read_starts + y.read_starts, 0)

    def test_extent_mismatch(self):
        y = raster_from_array([[1, 2], [3, 4]], extent=(10, 12, 0, 2))
        result = arith_raster(self.x, y, "+")
        self.assertEqual(result.error_kind, ArithErrorKind.GEOMETRY_MISMATCH)
        self.assertEqual(result.blocks_written, 0)

    def test_reference_system_is_not_compared(self):
        y = raster_from_array([[1, 1], [1, 1]], crs="EPSG:4326")
        result = arith(self.x, y, "+")
        self.assertFalse(result.has_error)

    def test_operand_without_values(self):
        shell = self.x.geometry()
        result = arith(self.x, shell, "+")
        self.assertEqual(result.error_kind, ArithErrorKind.NO_VALUES)
        self.assertEqual(result.blocks_written, 0)
        self.assertEqual(self.x.read_starts, 0)

    def test_raster_without_values(self):
        result = arith(self.x.geometry(), 1, "+")
        self.assertEqual(result.error_kind, ArithErrorKind.NO_VALUES)

    def test_operator_checked_first(self):
        y = raster_from_array([[1, 2, 3]])
        result = arith(self.x, y, "**")
        self.assertEqual(result.error_kind, ArithErrorKind.UNSUPPORTED_OPERATOR)

    def test_failed_result_is_inert(self):
        failed = arith(self.x, 1, "?")
        result = arith(failed, 1, "+")
        self.assertEqual(result.error_kind, ArithErrorKind.NO_VALUES)

    def test_driver_states(self):
        driver = ArithmeticDriver(self.x, ScalarOperand(1), "+")
        driver.run()
        self.assertEqual(driver.state, ArithState.DONE)

        driver = ArithmeticDriver(self.x, ScalarOperand(1), "?")
        driver.run()
        self.assertEqual(driver.state, ArithState.ERROR)


class TestStreaming(unittest.TestCase):
    """Test block-wise processing across several blocks."""

    def setUp(self):
        self.data = np.array([
            [[1, 2], [3, 4], [5, NAN]],
            [[10, 20], [30, 40], [50, 60]],
        ])
        self.x = SpyRaster.from_array(self.data)
        # Small budget: one row per block
        self.options = RasterOptions(max_cells_per_block=4)

    def test_scalar_over_blocks(self):
        result = arith_scalar(self.x, 2, "*", options=self.options)
        self.assertEqual(result.bs.n, 3)
        self.assertEqual(result.blocks_written, 3)
        np.testing.assert_array_equal(result.values(), self.data * 2)
        self.assertEqual(self.x.read_starts, self.x.read_stops)

    def test_blocks_written_in_order(self):
        x = RecordingSource.from_array(self.data)
        result = arith(x, 1, "+", options=self.options)
        self.assertIsInstance(result, RecordingRaster)
        self.assertEqual(result.rows_written, [(0, 1), (1, 1), (2, 1)])

    def test_identities(self):
        """x + 0 and x * 1 reproduce x, NA positions included."""
        np.testing.assert_array_equal(arith(self.x, 0, "+", options=self.options).values(), self.data)
        np.testing.assert_array_equal(arith(self.x, 1, "*", options=self.options).values(), self.data)

    def test_reverse_subtraction(self):
        result = arith_scalar(self.x, 100, "-", reverse=True, options=self.options)
        np.testing.assert_array_equal(result.values(), 100 - self.data)

    def test_reverse_comparison(self):
        result = arith_scalar(self.x, 4, ">", reverse=True)
        np.testing.assert_array_equal(result.values(), np.where(np.isnan(self.data), NAN, 4 > self.data))

    def test_reverse_modulo(self):
        result = arith_scalar(self.x, 7, "%", reverse=True)
        np.testing.assert_array_equal(result.values(), np.fmod(7, self.data))

    def test_na_scalar(self):
        """A NaN scalar gives NaN everywhere, whatever the operator."""
        for oper in ("+", "==", "^"):
            result = arith(self.x, NAN, oper, options=self.options)
            self.assertTrue(np.all(np.isnan(result.values())), msg=oper)

    def test_comparison_keeps_na(self):
        result = arith(self.x, 3, ">=")
        expected = np.where(np.isnan(self.data), NAN, self.data >= 3)
        np.testing.assert_array_equal(result.values(), expected)

    def test_per_layer_vector(self):
        result = arith_vector(self.x, [1, 100], "*", options=self.options)
        np.testing.assert_array_equal(result.values()[0], self.data[0])
        np.testing.assert_array_equal(result.values()[1], self.data[1] * 100)

    def test_vector_recycled_to_layers(self):
        data = np.ones((3, 2, 2))
        x = raster_from_array(data)
        result = arith(x, [1, 2], "+", options=self.options)
        np.testing.assert_array_equal(result.values()[:, 0, 0], [2, 3, 2])

    def test_vector_with_na(self):
        result = arith(self.x, [NAN, 1], "-", reverse=True)
        self.assertTrue(np.all(np.isnan(result.values()[0])))
        np.testing.assert_array_equal(result.values()[1], 1 - self.data[1])

    def test_raster_raster_over_blocks(self):
        y = SpyRaster.from_array(self.data[::-1])
        result = arith(self.x, y, "-", options=self.options)
        np.testing.assert_array_equal(result.values(), self.data - self.data[::-1])
        self.assertEqual(y.read_starts, 1)
        self.assertEqual(y.read_stops, 1)

    def test_raster_with_itself(self):
        result = arith(self.x, self.x, "+", options=self.options)
        np.testing.assert_array_equal(result.values(), self.data * 2)
        self.assertEqual(self.x.read_starts, self.x.read_stops)

    def test_layer_count_is_maximum(self):
        single = raster_from_array(self.data[0])
        result = arith(single, self.x, "+", options=self.options)
        self.assertEqual(result.nlyr, 2)
        np.testing.assert_array_equal(result.values(), self.data[0] + self.data)

        result = arith(self.x, single, "-", options=self.options)
        self.assertEqual(result.nlyr, 2)
        np.testing.assert_array_equal(result.values(), self.data - self.data[0])

    def test_layer_counts_not_multiples_warn_once(self):
        three = raster_from_array(np.stack([self.data[0], self.data[1], self.data[0] * 100]))
        result = arith(self.x, three, "+", options=self.options)
        self.assertEqual(result.bs.n, 3)
        self.assertEqual(len(result.warnings), 1)
        self.assertIn("not a multiple", result.warnings[0])
        np.testing.assert_array_equal(result.values()[2], self.data[0] + self.data[0] * 100)

    def test_layer_counts_multiples_do_not_warn(self):
        single = raster_from_array(self.data[0])
        result = arith(self.x, single, "+", options=self.options)
        self.assertEqual(result.warnings, [])

    def test_not_equal_differs_from_equal(self):
        y = raster_from_array([
            [[1, 0], [3, 0], [5, 6]],
            [[10, 0], [30, 0], [50, 0]],
        ])
        equal = arith(self.x, y, "==").values()
        not_equal = arith(self.x, y, "!=").values()
        np.testing.assert_array_equal(equal[0], [[1, 0], [1, 0], [1, NAN]])
        np.testing.assert_array_equal(not_equal[0], [[0, 1], [0, 1], [0, NAN]])
        np.testing.assert_array_equal(not_equal[1], [[0, 1], [0, 1], [0, 1]])


class TestStreamFailures(unittest.TestCase):
    """Test that failures stop the loop and release every stream."""

    def setUp(self):
        self.data = np.arange(6, dtype=float).reshape(3, 2)
        self.options = RasterOptions(max_cells_per_block=4)

    def test_read_failure(self):
        x = FailingReadRaster.from_array(self.data)
        result = arith(x, 1, "+", options=self.options)
        self.assertEqual(result.error_kind, ArithErrorKind.STREAM_READ_FAILURE)
        self.assertIn("block 1", result.message)
        self.assertEqual(result.blocks_written, 1)
        self.assertEqual(x.read_starts, 1)
        self.assertEqual(x.read_stops, 1)
        self.assertFalse(result.has_values())

    def test_operand_read_failure(self):
        x = SpyRaster.from_array(self.data)
        y = FailingReadRaster.from_array(self.data)
        result = arith(x, y, "*", options=self.options)
        self.assertEqual(result.error_kind, ArithErrorKind.STREAM_READ_FAILURE)
        self.assertEqual((x.read_starts, x.read_stops), (1, 1))
        self.assertEqual((y.read_starts, y.read_stops), (1, 1))

    def test_write_failure(self):
        x = FailingWriteSource.from_array(self.data)
        result = arith(x, 1, "+", options=self.options)
        self.assertIsInstance(result, FailingWriteRaster)
        self.assertEqual(result.error_kind, ArithErrorKind.STREAM_WRITE_FAILURE)
        self.assertEqual(result.message, "disk full")
        self.assertEqual(result.blocks_written, 1)
        self.assertEqual(x.read_starts, x.read_stops)
        self.assertFalse(result.has_values())


if __name__ == '__main__':
    unittest.main()
