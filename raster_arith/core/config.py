#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration settings for the raster arithmetic engine.

This module centralizes all configuration parameters used across the engine,
making it easier to modify settings in one place. Settings can be overridden
from a YAML file with :func:`load_config`.
"""
from dataclasses import dataclass
from typing import Dict, Any, Optional
from pathlib import Path

import yaml

# Path configuration
PROJECT_ROOT: Path = Path(__file__).parent.absolute()
DEFAULT_OUTPUT_DIR: Path = PROJECT_ROOT / "output"

# Block scheduling configuration
BLOCK_CONFIG: Dict[str, Any] = {
    "max_cells_per_block": 4_000_000,  # Cells (all layers) held per stream per block
    "min_rows": 1,
}

# Output configuration
OUTPUT_CONFIG: Dict[str, Any] = {
    "driver": "GTiff",
    "dtype": "float64",  # Floating types only, NA is written as NaN
    "overwrite": False,
    "progress": False,  # Show a tqdm progress bar over blocks
}

# Export configuration
EXPORT_CONFIG: Dict[str, Any] = {
    "export_metadata": False,
    "metadata_format": "json",  # Options: 'json', 'yaml'
}

# Logging configuration
LOGGING_CONFIG: Dict[str, Any] = {
    "level": "INFO",  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    "log_to_file": False,
    "log_file": DEFAULT_OUTPUT_DIR / "raster_arith.log",
    "log_format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

_SECTIONS: Dict[str, Dict[str, Any]] = {
    "block": BLOCK_CONFIG,
    "output": OUTPUT_CONFIG,
    "export": EXPORT_CONFIG,
    "logging": LOGGING_CONFIG,
}


@dataclass
class RasterOptions:
    """
    Per-call options for writing the result of an arithmetic operation.

    Attributes
    ----------
    filename : str, optional
        Path of the output file. If None, the result is kept in memory.
    overwrite : bool
        Whether an existing output file may be replaced.
    driver : str
        Rasterio driver used for file output.
    dtype : str
        Floating data type of file output, e.g. "float32" or "float64".
    max_cells_per_block : int
        Memory budget hint, in cells per stream, used to plan row blocks.
    progress : bool
        Whether to show a progress bar over blocks.
    """
    filename: Optional[str] = None
    overwrite: bool = False
    driver: str = "GTiff"
    dtype: str = "float64"
    max_cells_per_block: int = 4_000_000
    progress: bool = False

    @classmethod
    def from_config(cls, **overrides: Any) -> "RasterOptions":
        """Build options from the current module configuration."""
        options = cls(
            overwrite=OUTPUT_CONFIG.get("overwrite", False),
            driver=OUTPUT_CONFIG.get("driver", "GTiff"),
            dtype=OUTPUT_CONFIG.get("dtype", "float64"),
            max_cells_per_block=BLOCK_CONFIG.get("max_cells_per_block", 4_000_000),
            progress=OUTPUT_CONFIG.get("progress", False),
        )
        for key, value in overrides.items():
            if value is not None:
                setattr(options, key, value)
        return options


def load_config(path: str) -> Dict[str, Dict[str, Any]]:
    """
    Update the configuration dictionaries from a YAML file.

    Parameters
    ----------
    path : str
        Path to a YAML file with optional top-level sections
        ``block``, ``output``, ``export`` and ``logging``.

    Returns
    -------
    dict
        The sections that were applied.
    """
    # Imported here to avoid a circular import with logging_config
    from raster_arith.core.logging_config import get_module_logger
    logger = get_module_logger(__name__)

    with open(path, "r") as f:
        try:
            loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid configuration file {path}: {e}") from e

    if not isinstance(loaded, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")

    applied = {}
    for section, values in loaded.items():
        target = _SECTIONS.get(section)
        if target is None:
            logger.warning(f"Ignoring unknown configuration section: {section}")
            continue
        if not isinstance(values, dict):
            raise ValueError(f"Configuration section '{section}' must be a mapping")
        target.update(values)
        applied[section] = values

    logger.info(f"Loaded configuration from {path}: {sorted(applied)}")
    return applied
