#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Core functionality for raster arithmetic.

This module contains the core components for raster data handling,
block scheduling, configuration management, and logging setup.
"""
