#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Metadata utilities for the raster arithmetic engine.

This module provides functions for summarizing the layers of a raster and
saving metadata about an arithmetic run, including the operation, the
geometry, the error state and per-layer statistics.
"""
import os
import json
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
import yaml

from raster_arith.core.blocks import plan_blocks
from raster_arith.core.config import BLOCK_CONFIG, EXPORT_CONFIG
from raster_arith.core.logging_config import get_module_logger

# Initialize logger
logger = get_module_logger(__name__)


def layer_statistics(raster) -> pd.DataFrame:
    """
    Compute per-layer statistics, streaming the raster block by block.

    Parameters
    ----------
    raster : Raster
        Raster with values.

    Returns
    -------
    pd.DataFrame
        One row per layer with columns 'layer', 'min', 'max', 'mean',
        'na_count' and 'cell_count'. Statistics of a layer without valid
        cells are NaN.
    """
    if not raster.has_values():
        raise ValueError("raster has no values")

    nlyr = raster.nlyr
    minimum = np.full(nlyr, np.inf)
    maximum = np.full(nlyr, -np.inf)
    total = np.zeros(nlyr)
    valid = np.zeros(nlyr, dtype=np.int64)

    plan = plan_blocks(raster.geom, BLOCK_CONFIG.get("max_cells_per_block", 4_000_000))
    with raster.reading():
        for i in range(plan.n):
            block = raster.read_block(plan, i).reshape(nlyr, -1)
            mask = ~np.isnan(block)
            valid += mask.sum(axis=1)
            total += np.where(mask, block, 0.0).sum(axis=1)
            minimum = np.fmin(minimum, np.where(mask, block, np.inf).min(axis=1, initial=np.inf))
            maximum = np.fmax(maximum, np.where(mask, block, -np.inf).max(axis=1, initial=-np.inf))

    has_valid = valid > 0
    with np.errstate(invalid='ignore', divide='ignore'):
        mean = np.where(has_valid, total / np.maximum(valid, 1), np.nan)

    return pd.DataFrame({
        'layer': np.arange(1, nlyr + 1),
        'min': np.where(has_valid, minimum, np.nan),
        'max': np.where(has_valid, maximum, np.nan),
        'mean': mean,
        'na_count': raster.ncell - valid,
        'cell_count': np.full(nlyr, raster.ncell),
    })


def raster_info(raster) -> Dict[str, Any]:
    """Describe the geometry and state of a raster as plain Python types."""
    return {
        'nrow': raster.nrow,
        'ncol': raster.ncol,
        'nlyr': raster.nlyr,
        'extent': asdict(raster.extent),
        'crs': raster.geom.crs,
        'source': raster.source,
        'has_error': raster.has_error,
        'error_kind': raster.error_kind.name if raster.error_kind is not None else None,
        'message': raster.message or None,
        'warnings': list(raster.warnings),
    }


def save_metadata(
    result,
    operation: Dict[str, Any],
    output_path: str,
    format: Optional[str] = None
) -> Dict[str, Any]:
    """
    Save metadata about an arithmetic run.

    Parameters
    ----------
    result : Raster
        Raster returned by the arithmetic call.
    operation : dict
        Description of the call, e.g. operator, operand and inputs.
    output_path : str
        Path of the metadata file.
    format : str, optional
        'json' or 'yaml'. If None, uses the format from config.py.

    Returns
    -------
    dict
        The metadata that was written.
    """
    format = (format or EXPORT_CONFIG.get('metadata_format', 'json')).lower()
    logger.info(f"Saving metadata to {output_path}")

    metadata = {
        'timestamp': datetime.now().isoformat(),
        'operation': operation,
        'result': raster_info(result),
    }
    if result.has_values():
        stats = layer_statistics(result)
        # NaN is not valid JSON
        metadata['layers'] = json.loads(stats.to_json(orient='records'))

    os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)

    if format == 'json':
        with open(output_path, 'w') as f:
            json.dump(metadata, f, indent=2)
    elif format == 'yaml':
        with open(output_path, 'w') as f:
            yaml.safe_dump(metadata, f, default_flow_style=False)
    else:
        raise ValueError(f"Unsupported format: {format}")

    logger.info(f"Saved metadata for {result.nlyr} layers")
    return metadata
