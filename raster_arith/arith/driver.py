#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Block-streaming arithmetic driver.

This module applies an operator between a raster and a scalar, a per-layer
vector or another raster. The driver validates the call, then streams the
rasters in row blocks: each block is read, aligned with the operand,
combined with the operator and written to the output before the next block
is started.

Errors never propagate to the caller as exceptions. The returned raster
carries the error instead (``has_error``, ``error_kind``, ``message``) and
must be discarded by the caller. Validation errors are detected before any
stream is opened; stream errors stop the block loop and leave a partially
written output.
"""
from contextlib import ExitStack
from enum import Enum
from typing import Any, Optional, Sequence

from tqdm import tqdm

from raster_arith.arith.errors import ArithError, ArithErrorKind
from raster_arith.arith.operands import Operand, ScalarOperand, VectorOperand, RasterOperand, as_operand
from raster_arith.arith.operators import COMMUTATIVE, apply_operator, get_operator
from raster_arith.core.config import RasterOptions
from raster_arith.core.io import RasterIOError
from raster_arith.core.logging_config import get_module_logger
from raster_arith.core.raster import Raster
from raster_arith.utils.utils import timer

# Initialize logger
logger = get_module_logger(__name__)


class ArithState(Enum):
    INIT = "init"
    GEOMETRY_CHECK = "geometry check"
    VALUES_CHECK = "values check"
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"


class ArithmeticDriver:
    """
    Run one arithmetic call.

    Parameters
    ----------
    x : Raster
        Left-hand raster.
    operand : Operand
        Right-hand operand.
    oper : str
        Operator symbol.
    reverse : bool, optional
        Swap the operand order, so that the operand is on the left,
        by default False.
    options : RasterOptions, optional
        Output options. If None, built from the configuration.
    """

    def __init__(self, x: Raster, operand: Operand, oper: str, reverse: bool = False,
                 options: Optional[RasterOptions] = None):
        self.x = x
        self.operand = operand
        self.oper = oper
        self.reverse = reverse
        self.options = options or RasterOptions.from_config()
        self.state = ArithState.INIT
        self.out = x.geometry(operand.output_layers(x))

    def _enter(self, state: ArithState) -> None:
        logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state

    def run(self) -> Raster:
        """
        Validate the call and stream all blocks.

        Returns
        -------
        Raster
            Result raster, carrying an error state if the call failed.
        """
        try:
            op = get_operator(self.oper)
            if self.reverse and op in COMMUTATIVE:
                logger.debug(f"Operator '{op.symbol}' is commutative, reverse has no effect")

            if isinstance(self.operand, RasterOperand):
                self._enter(ArithState.GEOMETRY_CHECK)
                self.operand.check_geometry(self.x)

            self._enter(ArithState.VALUES_CHECK)
            if not (self.x.has_values() and self.operand.has_values()):
                raise ArithError(ArithErrorKind.NO_VALUES, "raster has no values")

            self._enter(ArithState.STREAMING)
            self._stream(op)
        except ArithError as e:
            level = logger.error if e.kind in (ArithErrorKind.STREAM_READ_FAILURE,
                                               ArithErrorKind.STREAM_WRITE_FAILURE) else logger.warning
            level(f"Arithmetic '{self.oper}' failed in state '{self.state.value}': {e.message}")
            self.out.set_error(e.message, e.kind)
            self.state = ArithState.ERROR
            return self.out

        self._enter(ArithState.DONE)
        return self.out

    def _stream(self, op) -> None:
        out = self.out
        n_streams = 2 + self.operand.n_streams

        with ExitStack() as stack:
            if not out.write_start(self.options, n_streams=n_streams):
                raise ArithError(ArithErrorKind.STREAM_WRITE_FAILURE, out.message)
            stack.callback(out.write_stop)
            try:
                self._stream_blocks(op, stack)
            except ArithError as e:
                # write_stop must see the error
                out.set_error(e.message, e.kind)
                raise

        # Closing the output can fail after the last block
        if out.has_error:
            raise ArithError(ArithErrorKind.STREAM_WRITE_FAILURE, out.message)

    def _stream_blocks(self, op, stack: ExitStack) -> None:
        out, x = self.out, self.x
        try:
            stack.enter_context(x.reading())
            self.operand.open(stack)
        except RasterIOError as e:
            raise ArithError(ArithErrorKind.STREAM_READ_FAILURE, str(e)) from e

        self.operand.prepare(x, out)
        plan = out.bs
        blocks = range(plan.n)
        if self.options.progress:
            blocks = tqdm(blocks, desc=f"Computing '{op.symbol}'", unit="block")

        for i in blocks:
            row, nrows = plan.row[i], plan.nrows[i]
            try:
                lhs = x.read_block(plan, i)
                a, b = self.operand.align(lhs, plan, i, x.nlyr)
            except RasterIOError as e:
                raise ArithError(ArithErrorKind.STREAM_READ_FAILURE, str(e)) from e

            result = apply_operator(op, a, b, self.reverse).ravel()
            if not out.write_block(result, row, nrows, 0, out.ncol):
                raise ArithError(ArithErrorKind.STREAM_WRITE_FAILURE, out.message)
            logger.debug(f"Block {i + 1}/{plan.n}: rows {row}-{row + nrows - 1}")


@timer
def arith(x: Raster, y: Any, oper: str, reverse: bool = False,
          options: Optional[RasterOptions] = None) -> Raster:
    """
    Apply an elementwise operator between a raster and an operand.

    Parameters
    ----------
    x : Raster
        Left-hand raster.
    y : Raster, float or sequence of float
        Right-hand operand: another raster, a scalar, or one value per
        layer (recycled to the number of layers).
    oper : str
        One of ``+ - * / % ^ == != > < >= <=``.
    reverse : bool, optional
        If True, ``y`` is the left operand, e.g. ``y - x`` for ``-``,
        by default False.
    options : RasterOptions, optional
        Output options (in memory by default).

    Returns
    -------
    Raster
        New raster. Check ``has_error`` before using it.
    """
    operand = as_operand(y)
    logger.info(f"Computing raster '{oper}' {operand!r}" + (" (reversed)" if reverse else ""))
    out = ArithmeticDriver(x, operand, oper, reverse, options).run()
    if not out.has_error:
        logger.info(f"Wrote {out.blocks_written} blocks, {out.nlyr} layers of {out.nrow} x {out.ncol} cells")
    return out


def arith_raster(x: Raster, y: Raster, oper: str, reverse: bool = False,
                 options: Optional[RasterOptions] = None) -> Raster:
    """Apply an operator between two rasters with the same rows, columns and extent."""
    return arith(x, RasterOperand(y), oper, reverse, options)


def arith_scalar(x: Raster, value: float, oper: str, reverse: bool = False,
                 options: Optional[RasterOptions] = None) -> Raster:
    """Apply an operator between every cell of a raster and a scalar."""
    return arith(x, ScalarOperand(value), oper, reverse, options)


def arith_vector(x: Raster, values: Sequence[float], oper: str, reverse: bool = False,
                 options: Optional[RasterOptions] = None) -> Raster:
    """Apply an operator between each layer of a raster and one value per layer."""
    if len(values) == 1:
        return arith_scalar(x, values[0], oper, reverse, options)
    return arith(x, VectorOperand(values), oper, reverse, options)
