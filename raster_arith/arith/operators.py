#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
NA-aware elementwise operators.

This module defines the fixed catalog of binary operators available to the
arithmetic engine, keyed by symbol:

- arithmetic: ``+``, ``-``, ``*``, ``/``, ``%`` (floating remainder, sign of
  the dividend), ``^`` (power)
- comparison: ``==``, ``!=``, ``>``, ``<``, ``>=``, ``<=`` (1.0 or 0.0)

Every operator follows the same missing-value rule: if either input cell is
NaN the result cell is NaN. This also holds for comparisons and for cases
where IEEE arithmetic would produce a number, such as ``1 ^ NaN``.
"""
from enum import Enum
from typing import Callable, Dict, FrozenSet, Union

import numpy as np

from raster_arith.arith.errors import UnsupportedOperatorError

ArrayLike = Union[np.ndarray, float]


class Operator(Enum):
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    MODULO = "%"
    POWER = "^"
    EQUAL = "=="
    NOT_EQUAL = "!="
    GREATER = ">"
    LESS = "<"
    GREATER_EQUAL = ">="
    LESS_EQUAL = "<="

    @property
    def symbol(self) -> str:
        return self.value


def _na_aware(func: Callable[[np.ndarray, np.ndarray], np.ndarray]) -> Callable[[ArrayLike, ArrayLike], np.ndarray]:
    """Wrap a numpy binary function so that NaN in either input gives NaN."""

    def wrapper(a: ArrayLike, b: ArrayLike) -> np.ndarray:
        a = np.asarray(a, dtype=np.float64)
        b = np.asarray(b, dtype=np.float64)
        with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
            result = np.asarray(func(a, b), dtype=np.float64)
        na = np.isnan(a) | np.isnan(b)
        if np.any(na):
            result = np.where(na, np.nan, result)
        return result

    wrapper.__name__ = func.__name__
    wrapper.__doc__ = func.__doc__
    return wrapper


OPERATORS: Dict[Operator, Callable[[ArrayLike, ArrayLike], np.ndarray]] = {
    Operator.ADD: _na_aware(np.add),
    Operator.SUBTRACT: _na_aware(np.subtract),
    Operator.MULTIPLY: _na_aware(np.multiply),
    Operator.DIVIDE: _na_aware(np.true_divide),
    Operator.MODULO: _na_aware(np.fmod),
    Operator.POWER: _na_aware(np.power),
    Operator.EQUAL: _na_aware(np.equal),
    Operator.NOT_EQUAL: _na_aware(np.not_equal),
    Operator.GREATER: _na_aware(np.greater),
    Operator.LESS: _na_aware(np.less),
    Operator.GREATER_EQUAL: _na_aware(np.greater_equal),
    Operator.LESS_EQUAL: _na_aware(np.less_equal),
}

COMMUTATIVE: FrozenSet[Operator] = frozenset({
    Operator.ADD, Operator.MULTIPLY, Operator.EQUAL, Operator.NOT_EQUAL,
})


def is_supported(symbol: str) -> bool:
    return symbol in {op.value for op in Operator}


def get_operator(symbol: Union[str, Operator]) -> Operator:
    """
    Look up an operator by symbol.

    Parameters
    ----------
    symbol : str or Operator
        Operator symbol, e.g. "+" or ">=".

    Returns
    -------
    Operator
        Catalog entry for the symbol.

    Raises
    ------
    UnsupportedOperatorError
        If the symbol is not in the catalog.
    """
    if isinstance(symbol, Operator):
        return symbol
    try:
        return Operator(symbol)
    except ValueError:
        raise UnsupportedOperatorError(symbol) from None


def apply_operator(op: Operator, a: ArrayLike, b: ArrayLike, reverse: bool = False) -> np.ndarray:
    """
    Apply an operator cell by cell.

    Parameters
    ----------
    op : Operator
        Operator to apply.
    a : np.ndarray or float
        Left operand (raster cells).
    b : np.ndarray or float
        Right operand, broadcast against ``a``.
    reverse : bool, optional
        If True, ``b`` is the left operand and ``a`` the right one,
        by default False.

    Returns
    -------
    np.ndarray
        Float64 result with NaN wherever either input is NaN.
    """
    func = OPERATORS[op]
    if reverse:
        return func(b, a)
    return func(a, b)
