"""HTTP routers for cratedigger."""

from __future__ import annotations

from cratedigger.api.health import router as health_router
from cratedigger.api.imports import router as imports_router
from cratedigger.api.spotify import router as spotify_router

ROUTERS = (health_router, imports_router, spotify_router)

__all__ = ["ROUTERS", "health_router", "imports_router", "spotify_router"]
