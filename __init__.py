#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tubecollate: aggregates every video of a YouTube playlist, with metadata and
top comments, into a single position-ordered result.
"""

__version__ = "1.0.0"
