#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Raster Arithmetic Package.

Block-streaming elementwise arithmetic and comparison operations over
multi-layer rasters, with NA-aware operators and bounded memory use.
"""

__version__ = "0.1.0"
__author__ = "Elena Project Team"
__email__ = "user@example.com"
