"""
API router aggregator.
Includes all route modules.
"""
from fastapi import APIRouter
from s3gateway.api import diagnostics, health, images

api_router = APIRouter()

# Include route modules; fixed paths must come before /images/{file_name}
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(diagnostics.router, prefix="/images", tags=["diagnostics"])
api_router.include_router(images.router, prefix="/images", tags=["images"])
