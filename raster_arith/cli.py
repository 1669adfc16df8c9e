#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Main entry point for the raster arithmetic engine.

This script applies an arithmetic or comparison operator between a raster
file and another raster, a scalar or one value per layer, and writes the
result to a raster file.
"""
import sys
import time
import argparse
from pathlib import Path
from typing import Any, Dict, List, Optional

from raster_arith import __version__
from raster_arith.arith.operators import Operator
from raster_arith.core.config import (
    DEFAULT_OUTPUT_DIR, EXPORT_CONFIG, RasterOptions, load_config
)
from raster_arith.core.logging_config import setup_logging, get_module_logger
from raster_arith.utils.utils import parse_vector

# Initialize logger
logger = get_module_logger(__name__)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Parameters
    ----------
    argv : list of str, optional
        Arguments to parse. If None, uses sys.argv.

    Returns
    -------
    argparse.Namespace
        Parsed command line arguments.
    """
    parser = argparse.ArgumentParser(
        description="Apply an arithmetic or comparison operator to raster files, block by block."
    )

    # Required arguments
    parser.add_argument(
        "--input", "-i",
        required=True,
        help="Path to input raster file (left-hand operand)"
    )

    parser.add_argument(
        "--operator", "-p",
        required=True,
        help=f"Operator symbol, one of: {' '.join(op.symbol for op in Operator)}"
    )

    operand = parser.add_mutually_exclusive_group(required=True)
    operand.add_argument(
        "--raster", "-r",
        help="Path to a second raster file (right-hand operand)"
    )
    operand.add_argument(
        "--scalar", "-s",
        help="Scalar right-hand operand (use NA for a missing value)"
    )
    operand.add_argument(
        "--vector", "-v",
        help="Comma-separated values, one per layer, recycled to the number of layers"
    )

    # Optional arguments
    parser.add_argument(
        "--reverse",
        action="store_true",
        help="Put the scalar or vector operand on the left of the operator"
    )

    parser.add_argument(
        "--output", "-o",
        help="Path to output raster file (default: <input_basename>_arith.tif)"
    )

    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Overwrite the output file if it exists"
    )

    parser.add_argument(
        "--dtype",
        choices=["float32", "float64"],
        help="Data type of the output file (default from configuration: float64)"
    )

    parser.add_argument(
        "--config", "-c",
        help="Path to custom YAML configuration file"
    )

    parser.add_argument(
        "--block-cells", "-b",
        type=int,
        help="Maximum number of cells per block and stream"
    )

    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar over blocks"
    )

    parser.add_argument(
        "--save-metadata", "-m",
        action="store_true",
        help="Save metadata about the operation and the result"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging level (default: INFO)"
    )

    # Version information
    parser.add_argument(
        "--version",
        action="version",
        version=f"Raster Arithmetic v{__version__}"
    )

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function to run the raster arithmetic engine.

    Returns
    -------
    int
        Exit code.
    """
    args = parse_arguments(argv)

    # Configuration first, so that the log level on the command line wins
    if args.config:
        try:
            load_config(args.config)
        except (OSError, ValueError) as e:
            logger.error(f"Could not load configuration: {str(e)}")
            return 1

    setup_logging(log_level=args.log_level)
    return run_arith(args)


def run_arith(args: argparse.Namespace) -> int:
    """
    Run one arithmetic operation described by command line arguments.

    Parameters
    ----------
    args : argparse.Namespace
        Command line arguments.

    Returns
    -------
    int
        Exit code.
    """
    # Import here to keep argument parsing fast
    from raster_arith.arith.driver import arith
    from raster_arith.core.io import RasterIOError, open_raster

    logger.info(f"Starting raster arithmetic for {args.input}")

    if not args.output:
        input_path = Path(args.input)
        args.output = str(DEFAULT_OUTPUT_DIR / f"{input_path.stem}_arith.tif")

    start_time = time.time()

    try:
        x = open_raster(args.input)
        operation: Dict[str, Any] = {
            'input': args.input,
            'operator': args.operator,
            'reverse': args.reverse,
        }
        if args.raster:
            y = open_raster(args.raster)
            operation['raster'] = args.raster
        elif args.scalar is not None:
            y = parse_vector(args.scalar)
            if len(y) != 1:
                logger.error(f"Expected a single scalar, got {len(y)} values")
                return 1
            operation['scalar'] = y[0]
        else:
            y = parse_vector(args.vector)
            operation['vector'] = y
    except (RasterIOError, ValueError) as e:
        logger.error(f"Invalid input: {str(e)}")
        return 1

    options = RasterOptions.from_config(
        filename=args.output,
        overwrite=args.overwrite or None,
        dtype=args.dtype,
        max_cells_per_block=args.block_cells,
        progress=args.progress or None,
    )

    result = arith(x, y, args.operator, reverse=args.reverse, options=options)

    if args.save_metadata or EXPORT_CONFIG.get('export_metadata', False):
        fmt = EXPORT_CONFIG.get('metadata_format', 'json')
        suffix = '.yaml' if fmt == 'yaml' else '.json'
        metadata_path = Path(args.output).with_suffix(suffix)
        operation['output'] = args.output
        if not save_metadata_for(result, operation, str(metadata_path)):
            return 1

    elapsed_time = time.time() - start_time

    if result.has_error:
        kind = result.error_kind.value if result.error_kind is not None else "error"
        logger.error(f"Raster arithmetic failed ({kind}): {result.message}")
        return 1

    logger.info(f"Raster arithmetic completed in {elapsed_time:.2f} seconds")
    logger.info(f"Result written to {args.output}")
    return 0


def save_metadata_for(result, operation: Dict[str, Any], path: str) -> bool:
    """Save run metadata. Returns False, after logging, if it cannot be saved."""
    from raster_arith.utils.metadata import save_metadata

    try:
        save_metadata(result, operation, path)
    except (OSError, ValueError) as e:
        logger.error(f"Could not save metadata to {path}: {str(e)}")
        return False
    return True


if __name__ == "__main__":
    sys.exit(main())
