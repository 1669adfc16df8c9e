#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Error kinds reported by the arithmetic engine.

The engine raises :class:`ArithError` internally at the failing step and
converts it once, at the entry point, into an error state on the returned
raster. Callers check ``result.has_error`` and ``result.error_kind``.
"""
from enum import Enum


class ArithErrorKind(Enum):
    UNSUPPORTED_OPERATOR = "unsupported operator"
    GEOMETRY_MISMATCH = "geometry mismatch"
    NO_VALUES = "no values"
    STREAM_READ_FAILURE = "stream read failure"
    STREAM_WRITE_FAILURE = "stream write failure"


class ArithError(Exception):
    """Failure of an arithmetic call, tagged with its kind."""

    def __init__(self, kind: ArithErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class UnsupportedOperatorError(ArithError):

    def __init__(self, symbol: str):
        super().__init__(ArithErrorKind.UNSUPPORTED_OPERATOR, f"unknown arith function: {symbol!r}")
        self.symbol = symbol
