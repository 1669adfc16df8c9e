#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Input/output handling for the raster arithmetic engine.

This module handles opening raster files, wrapping in-memory arrays as
rasters, and the windowed rasterio reads and writes used to stream blocks.
"""
import os
from dataclasses import replace
from typing import Any, Dict, Optional, Tuple

import numpy as np
import rasterio
from rasterio.errors import RasterioError
from rasterio.transform import from_bounds
from rasterio.windows import Window

from raster_arith.core.config import RasterOptions
from raster_arith.core.logging_config import get_module_logger

# Initialize logger
logger = get_module_logger(__name__)


class RasterIOError(RuntimeError):
    """Raised when the backing store of a raster cannot be read or written."""


def open_dataset(path: str):
    """
    Open a raster file for reading.

    Parameters
    ----------
    path : str
        Path to the raster file.

    Returns
    -------
    rasterio.io.DatasetReader
        Open dataset. The caller is responsible for closing it.
    """
    try:
        return rasterio.open(path)
    except (RasterioError, OSError) as e:
        logger.error(f"Failed to open raster {path}: {str(e)}")
        raise RasterIOError(f"Failed to open raster: {path}") from e


def read_window(dataset, row: int, nrows: int, ncol: int) -> np.ndarray:
    """
    Read a run of rows from all bands of an open dataset.

    Parameters
    ----------
    dataset : rasterio.io.DatasetReader
        Open dataset.
    row : int
        First row to read.
    nrows : int
        Number of rows to read.
    ncol : int
        Number of columns to read.

    Returns
    -------
    np.ndarray
        Float64 array of shape (bands, nrows, ncol) with nodata cells as NaN.
    """
    try:
        data = dataset.read(window=Window(0, row, ncol, nrows)).astype(np.float64)
    except (RasterioError, OSError) as e:
        raise RasterIOError(f"Failed to read rows {row}-{row + nrows - 1} of {dataset.name}: {str(e)}") from e

    nodata = dataset.nodata
    if nodata is not None and not np.isnan(nodata):
        data[data == nodata] = np.nan
    return data


def create_dataset(path: str, geometry, options: RasterOptions):
    """
    Create a floating-point raster file matching a geometry.

    Parameters
    ----------
    path : str
        Path of the file to create.
    geometry : Geometry
        Geometry of the raster to write.
    options : RasterOptions
        Output options (driver, dtype, overwrite).

    Returns
    -------
    rasterio.io.DatasetWriter
        Open dataset in write mode.
    """
    if os.path.exists(path) and not options.overwrite:
        raise RasterIOError(f"File exists: {path} (use overwrite=True to replace it)")

    try:
        is_float = np.issubdtype(np.dtype(options.dtype), np.floating)
    except TypeError:
        is_float = False
    if not is_float:
        raise RasterIOError(f"Unsupported output dtype: {options.dtype!r} (NA values need a floating type)")

    output_dir = os.path.dirname(path)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

    extent = geometry.extent
    profile = {
        'driver': options.driver,
        'height': geometry.nrow,
        'width': geometry.ncol,
        'count': geometry.nlyr,
        'dtype': np.dtype(options.dtype).name,
        'crs': geometry.crs,
        'transform': from_bounds(extent.xmin, extent.ymin, extent.xmax, extent.ymax,
                                 geometry.ncol, geometry.nrow),
        'nodata': np.nan,
    }
    try:
        return rasterio.open(path, 'w', **profile)
    except (RasterioError, OSError) as e:
        raise RasterIOError(f"Failed to create raster {path}: {str(e)}") from e


def write_window(dataset, values: np.ndarray, row: int, col: int) -> None:
    """Write an array of shape (bands, nrows, ncols) at the given offset."""
    nrows, ncols = values.shape[1], values.shape[2]
    try:
        dataset.write(values.astype(dataset.dtypes[0], copy=False), window=Window(col, row, ncols, nrows))
    except (RasterioError, OSError) as e:
        raise RasterIOError(f"Failed to write rows {row}-{row + nrows - 1} of {dataset.name}: {str(e)}") from e


def close_dataset(dataset) -> None:
    """Close a dataset, flushing any pending writes."""
    try:
        dataset.close()
    except (RasterioError, OSError) as e:
        raise RasterIOError(f"Failed to close {dataset.name}: {str(e)}") from e


def read_header(path: str) -> Dict[str, Any]:
    """
    Read the geometry and nodata information of a raster file.

    Parameters
    ----------
    path : str
        Path to the raster file.

    Returns
    -------
    dict
        Dictionary with 'width', 'height', 'count', 'bounds', 'crs',
        'nodata' and 'driver'.
    """
    with open_dataset(path) as src:
        meta = {
            'width': src.width,
            'height': src.height,
            'count': src.count,
            'bounds': src.bounds,
            'crs': src.crs.to_string() if src.crs else None,
            'nodata': src.nodata,
            'driver': src.driver,
        }
    return meta


def open_raster(path: str):
    """
    Open a raster file as a file-backed Raster.

    Values are not loaded; blocks are read on demand while streaming.

    Parameters
    ----------
    path : str
        Path to the raster file.

    Returns
    -------
    Raster
        File-backed raster.
    """
    # Import here to avoid circular imports
    from raster_arith.core.raster import Extent, Geometry, Raster

    logger.info(f"Opening raster {path}")
    meta = read_header(path)
    bounds = meta['bounds']
    geometry = Geometry(
        nrow=meta['height'],
        ncol=meta['width'],
        nlyr=meta['count'],
        extent=Extent(bounds.left, bounds.right, bounds.bottom, bounds.top),
        crs=meta['crs'],
    )
    logger.info(f"Opened raster with {geometry.nlyr} layers of {geometry.nrow} x {geometry.ncol} cells")
    return Raster(geometry, source=str(path))


def raster_from_array(
    array: np.ndarray,
    extent: Optional[Tuple[float, float, float, float]] = None,
    crs: Optional[str] = None
):
    """
    Wrap an array as an in-memory Raster.

    Parameters
    ----------
    array : np.ndarray
        2D array (one layer) or 3D array of shape (layers, rows, cols).
        NaN marks missing values.
    extent : tuple, optional
        (xmin, xmax, ymin, ymax). Defaults to (0, ncol, 0, nrow).
    crs : str, optional
        Coordinate reference system, e.g. "EPSG:32611".

    Returns
    -------
    Raster
        In-memory raster holding a float64 copy of the array.
    """
    from raster_arith.core.raster import Extent, Geometry, Raster

    values = np.array(array, dtype=np.float64)
    if values.ndim == 2:
        values = values[np.newaxis, :, :]
    if values.ndim != 3:
        raise ValueError(f"Expected a 2D or 3D array, got {values.ndim} dimensions")

    nlyr, nrow, ncol = values.shape
    if extent is None:
        extent = (0.0, float(ncol), 0.0, float(nrow))

    geometry = Geometry(nrow=nrow, ncol=ncol, nlyr=nlyr, extent=Extent(*extent), crs=crs)
    return Raster(geometry, values=values)


def write_raster(raster, path: str, options: Optional[RasterOptions] = None):
    """
    Stream an existing raster into a file, block by block.

    Parameters
    ----------
    raster : Raster
        Raster with values.
    path : str
        Output file path.
    options : RasterOptions, optional
        Output options. ``filename`` is set to ``path``.

    Returns
    -------
    Raster
        File-backed copy of the raster, or a raster carrying an error.
    """
    options = options or RasterOptions.from_config()
    options = replace(options, filename=str(path))

    out = raster.geometry()
    if not raster.has_values():
        out.set_error("raster has no values")
        return out

    if not out.write_start(options, n_streams=2):
        return out
    try:
        with raster.reading():
            for i, (row, nrows) in enumerate(out.bs):
                if not out.write_block(raster.read_block(out.bs, i), row, nrows):
                    break
    except RasterIOError as e:
        out.set_error(str(e))
    finally:
        out.write_stop()

    logger.info(f"Wrote raster to {path}")
    return out
