#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Operand recycling.

Recycling repeats a shorter sequence cyclically until it reaches a target
length: ``result[i] = source[i % len(source)]``.
"""
from typing import Sequence, Tuple, Union

import numpy as np


def recycle(source: Union[Sequence[float], np.ndarray], target_length: int) -> np.ndarray:
    """
    Repeat a sequence cyclically to a target length.

    Parameters
    ----------
    source : sequence or np.ndarray
        Values to repeat. Must not be empty.
    target_length : int
        Length of the result.

    Returns
    -------
    np.ndarray
        1D array with ``result[i] == source[i % len(source)]``.
    """
    source = np.asarray(source).ravel()
    if source.size == 0:
        raise ValueError("Cannot recycle an empty sequence")
    if target_length < 0:
        raise ValueError(f"Target length must be non-negative, got {target_length}")

    if source.size == target_length:
        return source
    return source[np.arange(target_length) % source.size]


def recycle_pair(a: np.ndarray, b: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Recycle the shorter of two buffers to the length of the longer one.

    Lengths that are not multiples of each other are recycled all the same;
    callers decide whether to warn.

    Parameters
    ----------
    a, b : np.ndarray
        1D buffers.

    Returns
    -------
    tuple
        The two buffers with equal lengths.
    """
    if a.size == b.size:
        return a, b

    if a.size < b.size:
        return recycle(a, b.size), b
    return a, recycle(b, a.size)
