"""Liveness endpoint."""

from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(prefix="/api/health", tags=["Health"], include_in_schema=False)


@router.get("/live")
async def live() -> dict[str, str]:
    """Return a lightweight liveness response without dependency checks."""

    return {"status": "ok"}
