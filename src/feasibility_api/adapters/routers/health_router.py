# src/feasibility_api/adapters/routers/health_router.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Health endpoints (Adapters Layer).

Purpose:
    Expose a liveness signal for container orchestrators and load balancers.
    Liveness never touches the store; a store outage must not restart the
    process.
"""

from __future__ import annotations

import typing as t

from fastapi import APIRouter
from pydantic import BaseModel

from feasibility_api import __version__

router = APIRouter(prefix="/health", tags=["Health"])


class LivenessResponse(BaseModel):
    """Liveness payload."""

    status: t.Literal["ok"]
    version: str


@router.get("/liveness", response_model=LivenessResponse, summary="Process liveness")
async def liveness() -> LivenessResponse:
    return LivenessResponse(status="ok", version=__version__)
