#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Right-hand operands of a raster arithmetic call.

An operand is one of:

- ScalarOperand: one value broadcast to every cell
- VectorOperand: one value per layer, recycled to the raster's layer count
- RasterOperand: another raster, streamed block by block

Each operand aligns itself with a block of the left-hand raster so that the
driver can run a single loop for all three shapes.
"""
import numbers
from contextlib import ExitStack
from typing import Any, Sequence, Tuple, Union

import numpy as np

from raster_arith.arith.errors import ArithError, ArithErrorKind
from raster_arith.arith.recycle import recycle, recycle_pair
from raster_arith.core.blocks import BlockPlan
from raster_arith.core.raster import Raster


class Operand:
    """Base class for operands. Defaults suit operands without a stream."""

    n_streams = 0

    def output_layers(self, x: Raster) -> int:
        return x.nlyr

    def check_geometry(self, x: Raster) -> None:
        pass

    def has_values(self) -> bool:
        return True

    def prepare(self, x: Raster, out: Raster) -> None:
        pass

    def open(self, stack: ExitStack) -> None:
        pass

    def align(self, lhs: np.ndarray, plan: BlockPlan, i: int,
              nlyr: int) -> Tuple[np.ndarray, Union[np.ndarray, float]]:
        """
        Align with one block of the left-hand raster.

        Parameters
        ----------
        lhs : np.ndarray
            Flat, layer-major block of the left-hand raster.
        plan : BlockPlan
            Block plan of the output.
        i : int
            Index of the block.
        nlyr : int
            Number of layers of the left-hand raster.

        Returns
        -------
        tuple
            Left and right operands, ready to broadcast against each other.
        """
        raise NotImplementedError


class ScalarOperand(Operand):

    def __init__(self, value: float):
        self.value = float(value)

    def __repr__(self) -> str:
        return f"ScalarOperand({self.value})"

    def align(self, lhs, plan, i, nlyr):
        return lhs, self.value


class VectorOperand(Operand):
    """One value per layer. Recycled to the layer count once per call."""

    def __init__(self, values: Sequence[float]):
        self.values = np.asarray(values, dtype=np.float64).ravel()
        if self.values.size == 0:
            raise ValueError("Vector operand must not be empty")
        self._layer_values = self.values

    def __repr__(self) -> str:
        return f"VectorOperand({self.values.tolist()})"

    def prepare(self, x: Raster, out: Raster) -> None:
        self._layer_values = recycle(self.values, x.nlyr)

    def align(self, lhs, plan, i, nlyr):
        # One row per layer so that each layer gets its own value
        return lhs.reshape(nlyr, -1), self._layer_values[:, np.newaxis]


class RasterOperand(Operand):

    n_streams = 1

    def __init__(self, raster: Raster):
        self.raster = raster

    def __repr__(self) -> str:
        return f"RasterOperand({self.raster!r})"

    def output_layers(self, x: Raster) -> int:
        return max(x.nlyr, self.raster.nlyr)

    def check_geometry(self, x: Raster) -> None:
        if not x.compare_geometry(self.raster, layers=False, extent=True):
            raise ArithError(ArithErrorKind.GEOMETRY_MISMATCH, "dimensions and/or extent do not match")

    def has_values(self) -> bool:
        return self.raster.has_values()

    def prepare(self, x: Raster, out: Raster) -> None:
        longer, shorter = max(x.nlyr, self.raster.nlyr), min(x.nlyr, self.raster.nlyr)
        if shorter and longer % shorter:
            out.add_warning(f"Longer layer count ({longer}) is not a multiple of shorter layer count ({shorter})")

    def open(self, stack: ExitStack) -> None:
        stack.enter_context(self.raster.reading())

    def align(self, lhs, plan, i, nlyr):
        return recycle_pair(lhs, self.raster.read_block(plan, i))


def as_operand(obj: Any) -> Operand:
    """
    Wrap a raster, number or sequence of numbers as an operand.

    A sequence with a single value becomes a ScalarOperand.

    Parameters
    ----------
    obj : Raster, Operand, float or sequence of float
        Right-hand side of an arithmetic call.

    Returns
    -------
    Operand
        Matching operand.
    """
    if isinstance(obj, Operand):
        return obj
    if isinstance(obj, Raster):
        return RasterOperand(obj)
    if isinstance(obj, numbers.Real):
        return ScalarOperand(obj)

    values = np.asarray(obj, dtype=np.float64).ravel()
    if values.size == 0:
        raise ValueError("Vector operand must not be empty")
    if values.size == 1:
        return ScalarOperand(values[0])
    return VectorOperand(values)
