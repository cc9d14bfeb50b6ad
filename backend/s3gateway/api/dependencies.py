"""
FastAPI dependencies exposing the objects created in the app lifespan.
"""
from fastapi import Request

from s3gateway.services.storage_coordinator import StorageCoordinator


def get_coordinator(request: Request) -> StorageCoordinator:
    """Storage coordinator created at startup (see s3gateway.main)."""
    return request.app.state.coordinator
