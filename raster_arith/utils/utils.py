#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Utility functions for the raster arithmetic engine.
"""
import functools
import time
from typing import Callable, List

from raster_arith.core.logging_config import get_module_logger

# Initialize logger
logger = get_module_logger(__name__)

NA_STRINGS = {"na", "nan", "null"}


def timer(func: Callable) -> Callable:
    """
    Decorator to time function execution.
    
    Parameters
    ----------
    func : Callable
        Function to time.
        
    Returns
    -------
    Callable
        Wrapped function with timing.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        result = func(*args, **kwargs)
        elapsed = time.time() - start_time
        logger.debug(f"Function {func.__name__} took {elapsed:.2f} seconds to run")
        return result
    return wrapper


def parse_vector(text: str) -> List[float]:
    """
    Parse a comma-separated list of numbers.

    Parameters
    ----------
    text : str
        Values such as "1,2.5,NA". "NA", "nan" and "null" become NaN.

    Returns
    -------
    list of float
        Parsed values.
    """
    values = []
    for item in text.split(","):
        item = item.strip()
        if item.lower() in NA_STRINGS:
            values.append(float("nan"))
            continue
        try:
            values.append(float(item))
        except ValueError:
            raise ValueError(f"Invalid number in vector: {item!r}") from None
    return values
