"""
orgregistry/api/health.py — Health check dev-сервера.

GET /api/health — состояние хранилища и push-канала.
"""

from fastapi import APIRouter

from orgregistry import events

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check dev-сервера")
async def health():
    push_ok = events.is_connected()
    return {
        "status": "healthy" if push_ok else "degraded",
        "storage": "memory",
        "push": "connected" if push_ok else "disconnected",
        "service": "orgregistry",
    }
