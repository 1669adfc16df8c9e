#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Utility modules for raster arithmetic.

This package contains metadata handling and general-purpose helper functions.
"""
