"""Routers Package Export (Adapters Layer).

Purpose:
    Provide stable, explicit exports for the feasibility, health and metrics
    routers so application bootstrap (`main.py`) stays decoupled from router
    file layout.

Layer:
    adapters/routers
"""

from __future__ import annotations

from .feasibility_router import router as feasibility_router
from .health_router import router as health_router
from .metrics_router import router as metrics_router

__all__ = ["feasibility_router", "health_router", "metrics_router"]
