#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Raster data model.

A Raster is an ordered collection of layers sharing one geometry. Its values
live either in memory (a float64 array of shape (layers, rows, cols) with NaN
as the missing value) or in a file read through rasterio. Values are streamed
in row blocks; each block is a flat, layer-major buffer (all rows of layer 0,
then layer 1, ...).

Instead of raising, operations that produce a raster record failures on the
raster itself (``has_error``, ``message``). A raster carrying an error has no
values and is ignored by every downstream operation.
"""
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, Iterator, List, Optional

import numpy as np

from raster_arith.core import io
from raster_arith.core.blocks import BlockPlan, block_budget, plan_blocks
from raster_arith.core.config import BLOCK_CONFIG, RasterOptions
from raster_arith.core.io import RasterIOError
from raster_arith.core.logging_config import get_module_logger

# Initialize logger
logger = get_module_logger(__name__)


class BlockOrderError(RuntimeError):
    """Raised when blocks are written out of plan order or before write_start."""


@dataclass(frozen=True)
class Extent:
    xmin: float
    xmax: float
    ymin: float
    ymax: float


@dataclass(frozen=True)
class Geometry:
    """Rows, columns, layers, spatial extent and reference system of a raster."""
    nrow: int
    ncol: int
    nlyr: int
    extent: Extent
    crs: Optional[str] = None

    @property
    def ncell(self) -> int:
        return self.nrow * self.ncol

    def with_layers(self, nlyr: int) -> "Geometry":
        return replace(self, nlyr=nlyr)


class Raster:
    """
    Multi-layer gridded dataset with block-wise read and write access.

    Parameters
    ----------
    geom : Geometry
        Geometry shared by all layers.
    values : np.ndarray, optional
        In-memory values of shape (nlyr, nrow, ncol).
    source : str, optional
        Path of a raster file holding the values.
    """

    def __init__(self, geom: Geometry, values: Optional[np.ndarray] = None,
                 source: Optional[str] = None):
        if values is not None:
            values = np.asarray(values, dtype=np.float64)
            expected = (geom.nlyr, geom.nrow, geom.ncol)
            if values.shape != expected:
                raise ValueError(f"Values have shape {values.shape}, expected {expected}")

        self.geom = geom
        self.source = source
        self._values = values

        self.bs: Optional[BlockPlan] = None
        self.error_kind: Any = None
        self.message: str = ""
        self.warnings: List[str] = []

        self._reader = None
        self._read_depth = 0
        self._writer = None
        self._buffer: Optional[np.ndarray] = None
        self._filename: Optional[str] = None
        self._next_block = 0

    def __repr__(self) -> str:
        backing = self.source or ("memory" if self._values is not None else "no values")
        state = f", error={self.message!r}" if self.has_error else ""
        return (f"Raster({self.nlyr} layers, {self.nrow} x {self.ncol}, "
                f"{backing}{state})")

    # Dimensions

    @property
    def nrow(self) -> int:
        return self.geom.nrow

    @property
    def ncol(self) -> int:
        return self.geom.ncol

    @property
    def nlyr(self) -> int:
        return self.geom.nlyr

    @property
    def ncell(self) -> int:
        return self.geom.ncell

    @property
    def extent(self) -> Extent:
        return self.geom.extent

    # Error state

    @property
    def has_error(self) -> bool:
        return bool(self.message)

    def set_error(self, message: str, kind: Any = None) -> None:
        self.message = message
        if kind is not None:
            self.error_kind = kind

    def add_warning(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    # Geometry

    def geometry(self, nlyr: Optional[int] = None) -> "Raster":
        """
        Return a raster with the same geometry and no values.

        Parameters
        ----------
        nlyr : int, optional
            Number of layers of the new raster, by default the same as this one.
        """
        geom = self.geom if nlyr is None else self.geom.with_layers(nlyr)
        return Raster(geom)

    def compare_geometry(self, other: "Raster", layers: bool = False, extent: bool = True) -> bool:
        """
        Check whether two rasters share the same geometry.

        Rows and columns are always compared. The reference system is not.

        Parameters
        ----------
        other : Raster
            Raster to compare with.
        layers : bool, optional
            Also require the same number of layers, by default False.
        extent : bool, optional
            Also require the same spatial extent, by default True.
        """
        if (self.nrow, self.ncol) != (other.nrow, other.ncol):
            logger.debug(f"Dimensions differ: {self.nrow} x {self.ncol} vs {other.nrow} x {other.ncol}")
            return False
        if layers and self.nlyr != other.nlyr:
            logger.debug(f"Layer counts differ: {self.nlyr} vs {other.nlyr}")
            return False
        if extent and self.extent != other.extent:
            logger.debug(f"Extents differ: {self.extent} vs {other.extent}")
            return False
        return True

    def has_values(self) -> bool:
        return not self.has_error and (self._values is not None or self.source is not None)

    # Reading

    def read_start(self) -> None:
        """Open the backing store for reading. Calls may be nested."""
        if self._read_depth == 0 and self._values is None:
            if self.source is None:
                raise RasterIOError("raster has no values")
            self._reader = io.open_dataset(self.source)
        self._read_depth += 1

    def read_stop(self) -> None:
        if self._read_depth == 0:
            return
        self._read_depth -= 1
        if self._read_depth == 0 and self._reader is not None:
            self._reader.close()
            self._reader = None

    @contextmanager
    def reading(self) -> Iterator["Raster"]:
        self.read_start()
        try:
            yield self
        finally:
            self.read_stop()

    def read_block(self, plan: BlockPlan, i: int) -> np.ndarray:
        """
        Read block ``i`` of a plan as a flat, layer-major buffer.

        Parameters
        ----------
        plan : BlockPlan
            Block plan, usually the plan of the output raster.
        i : int
            Index of the block.

        Returns
        -------
        np.ndarray
            1D float64 array of length nlyr * nrows * ncol.
        """
        row, nrows = plan.row[i], plan.nrows[i]
        if self._values is not None:
            return self._values[:, row:row + nrows, :].flatten()
        if self._reader is None:
            raise RasterIOError("read_block called before read_start")
        return io.read_window(self._reader, row, nrows, self.ncol).ravel()

    def values(self) -> np.ndarray:
        """
        Read all values.

        Returns
        -------
        np.ndarray
            Float64 array of shape (nlyr, nrow, ncol).
        """
        if not self.has_values():
            raise ValueError("raster has no values")
        if self._values is not None:
            return self._values.copy()

        plan = plan_blocks(self.geom, BLOCK_CONFIG.get("max_cells_per_block", 4_000_000))
        with self.reading():
            blocks = [self.read_block(plan, i).reshape(self.nlyr, nrows, self.ncol)
                      for i, (_, nrows) in enumerate(plan)]
        if not blocks:
            return np.empty((self.nlyr, self.nrow, self.ncol))
        return np.concatenate(blocks, axis=1)

    # Writing

    @property
    def blocks_written(self) -> int:
        return self._next_block

    def write_start(self, options: Optional[RasterOptions] = None, n_streams: int = 1) -> bool:
        """
        Prepare the raster to receive values and derive its block plan.

        Parameters
        ----------
        options : RasterOptions, optional
            Output options. Values go to ``options.filename`` when set,
            otherwise they are kept in memory.
        n_streams : int, optional
            Number of streams taking part in the call, used to share the
            memory budget, by default 1.

        Returns
        -------
        bool
            True on success. On failure the raster carries the error.
        """
        options = options or RasterOptions.from_config()
        budget = block_budget(options.max_cells_per_block, n_streams)
        self.bs = plan_blocks(self.geom, budget)
        self._next_block = 0

        if options.filename:
            try:
                self._writer = io.create_dataset(options.filename, self.geom, options)
            except RasterIOError as e:
                logger.error(str(e))
                self.set_error(str(e))
                return False
            self._filename = options.filename
        else:
            self._buffer = np.full((self.nlyr, self.nrow, self.ncol), np.nan)

        logger.debug(f"Writing {self.bs.n} blocks to {options.filename or 'memory'}")
        return True

    def write_block(self, values: np.ndarray, row: int, nrows: int,
                    col: int = 0, ncols: Optional[int] = None) -> bool:
        """
        Write the next block of the plan.

        Parameters
        ----------
        values : np.ndarray
            Flat, layer-major buffer of length nlyr * nrows * ncols.
        row : int
            First row of the block.
        nrows : int
            Number of rows in the block.
        col : int, optional
            First column, by default 0.
        ncols : int, optional
            Number of columns, by default all columns.

        Returns
        -------
        bool
            True on success. On failure the raster carries the error.
        """
        if self.bs is None or (self._writer is None and self._buffer is None):
            raise BlockOrderError("write_block called before write_start")
        i = self._next_block
        if i >= self.bs.n or (row, nrows) != (self.bs.row[i], self.bs.nrows[i]):
            raise BlockOrderError(f"Block at row {row} ({nrows} rows) does not match block {i} of the plan")

        ncols = self.ncol if ncols is None else ncols
        block = np.asarray(values, dtype=np.float64).reshape(self.nlyr, nrows, ncols)

        if self._writer is not None:
            try:
                io.write_window(self._writer, block, row, col)
            except RasterIOError as e:
                logger.error(str(e))
                self.set_error(str(e))
                return False
        else:
            self._buffer[:, row:row + nrows, col:col + ncols] = block

        self._next_block += 1
        return True

    def write_stop(self) -> None:
        """Close the output. Values become available if no error occurred."""
        if self._writer is not None:
            try:
                io.close_dataset(self._writer)
            except RasterIOError as e:
                logger.error(str(e))
                self.set_error(str(e))
            self._writer = None
            if not self.has_error:
                self.source = self._filename
        elif self._buffer is not None:
            if not self.has_error:
                self._values = self._buffer
            self._buffer = None

        if self.bs is not None and self._next_block < self.bs.n and not self.has_error:
            self.add_warning(f"Only {self._next_block} of {self.bs.n} blocks were written")

    @contextmanager
    def writing(self, options: Optional[RasterOptions] = None, n_streams: int = 1) -> Iterator[BlockPlan]:
        if not self.write_start(options, n_streams):
            raise RasterIOError(self.message)
        try:
            yield self.bs
        finally:
            self.write_stop()
