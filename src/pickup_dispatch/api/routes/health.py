"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...errors import InfrastructureError
from ...persistence.supabase_store import ping
from ..dependencies import ServiceContainer, get_container

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/storage", status_code=status.HTTP_200_OK)
def check_storage(container: ServiceContainer = Depends(get_container)) -> dict:
    """Check that the configured storage backend answers."""
    if container.client is None:
        return {
            "backend": container.storage_backend,
            "connected": True,
            "message": "In-memory storage; data is lost on restart.",
        }

    try:
        ping(container.client)
    except InfrastructureError as exc:
        return {
            "backend": container.storage_backend,
            "connected": False,
            "error": str(exc),
            "message": f"Database connection error: {exc}",
        }
    return {"backend": container.storage_backend, "connected": True, "message": "Database connected."}
