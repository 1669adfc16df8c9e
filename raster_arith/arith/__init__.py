#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Arithmetic engine for raster data.

This package contains the operator catalog, operand recycling, the operand
types and the block-streaming driver that ties them together.
"""
from raster_arith.arith.driver import arith, arith_raster, arith_scalar, arith_vector
from raster_arith.arith.errors import ArithError, ArithErrorKind
from raster_arith.arith.operators import Operator, OPERATORS, apply_operator, get_operator

__all__ = [
    "arith", "arith_raster", "arith_scalar", "arith_vector",
    "ArithError", "ArithErrorKind",
    "Operator", "OPERATORS", "apply_operator", "get_operator",
]
