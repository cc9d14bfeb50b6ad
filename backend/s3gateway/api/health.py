"""
Health check endpoint.
Reports which storage backends are configured; no backend is contacted.
"""
from fastapi import APIRouter, Depends, HTTPException

from s3gateway.api.dependencies import get_coordinator
from s3gateway.services.storage_coordinator import StorageCoordinator

router = APIRouter()


@router.get("")
async def health_check(coordinator: StorageCoordinator = Depends(get_coordinator)):
    """
    Health check endpoint.
    Unhealthy when no storage backend is enabled.
    """
    backends = list(coordinator.registry.enabled_clients())
    health_status = {
        "status": "healthy",
        "service": coordinator.settings.service_name,
        "upload_strategy": coordinator.settings.storage_upload_strategy.value,
        "backends": backends
    }

    if not backends:
        health_status["status"] = "unhealthy"
        raise HTTPException(status_code=503, detail=health_status)

    return health_status
