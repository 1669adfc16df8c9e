#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Row-block scheduling for streaming raster operations.

A block plan partitions the rows of a raster into contiguous, non-overlapping
runs that are read, processed and written one at a time, so that memory use
stays bounded regardless of the raster size.
"""
from dataclasses import dataclass
from typing import Iterator, Tuple

from raster_arith.core.config import BLOCK_CONFIG
from raster_arith.core.logging_config import get_module_logger

# Initialize logger
logger = get_module_logger(__name__)


@dataclass(frozen=True)
class BlockPlan:
    """
    Ordered partition of raster rows into blocks.

    Attributes
    ----------
    row : tuple of int
        First row of each block.
    nrows : tuple of int
        Number of rows in each block.
    """
    row: Tuple[int, ...]
    nrows: Tuple[int, ...]

    @property
    def n(self) -> int:
        return len(self.row)

    def __len__(self) -> int:
        return len(self.row)

    def __iter__(self) -> Iterator[Tuple[int, int]]:
        return iter(zip(self.row, self.nrows))


def plan_blocks(geometry, budget_hint: int) -> BlockPlan:
    """
    Partition the rows of a raster into blocks.

    Parameters
    ----------
    geometry : Geometry
        Geometry of the raster to stream.
    budget_hint : int
        Maximum number of cells (all layers together) held in one block.

    Returns
    -------
    BlockPlan
        Non-overlapping blocks covering every row once, in increasing order.
    """
    nrow, ncol, nlyr = geometry.nrow, geometry.ncol, geometry.nlyr
    if nrow == 0:
        return BlockPlan(row=(), nrows=())

    cells_per_row = max(1, ncol * nlyr)
    rows_per_block = max(BLOCK_CONFIG.get("min_rows", 1), int(budget_hint) // cells_per_row, 1)
    rows_per_block = min(rows_per_block, nrow)

    starts = tuple(range(0, nrow, rows_per_block))
    sizes = tuple(min(rows_per_block, nrow - start) for start in starts)

    logger.debug(f"Planned {len(starts)} blocks of up to {rows_per_block} rows for {nrow} rows")
    return BlockPlan(row=starts, nrows=sizes)


def block_budget(max_cells_per_block: int, n_streams: int) -> int:
    """Share a cell budget between the streams taking part in one call."""
    return max(1, int(max_cells_per_block) // max(1, n_streams))
