# src/feasibility_api/__init__.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Feasibility API.

Canonicalizes multi-source feasibility survey answers, derives a simplified
pro-forma financial model, and assembles the payload consumed by the
narrative report generator.
"""

__version__ = "0.1.0"
