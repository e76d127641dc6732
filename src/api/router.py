"""Main API router - aggregates all sub-routers.

All routes are versioned under /api/v1 except health checks, which are
mounted by the application factory.
"""

from __future__ import annotations

from fastapi import APIRouter

from src.api import data_rights

# Versioned API router
api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(data_rights.router)
