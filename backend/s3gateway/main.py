"""
FastAPI application entry point.
Sets up the API with lifespan events that build the storage clients,
the fan-out pool and the coordinator, and release them on shutdown.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from s3gateway import __version__
from s3gateway.api.errors import register_exception_handlers
from s3gateway.api.router import api_router
from s3gateway.config import Settings, settings as default_settings
from s3gateway.middleware.metrics_middleware import MetricsMiddleware
from s3gateway.services.storage_coordinator import StorageCoordinator
from s3gateway.services.validation_service import FileValidationService
from s3gateway.storage.client_registry import ClientRegistry
from s3gateway.storage.dispatcher import OperationDispatcher
from s3gateway.utils.logging import configure_logging

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, registry: Optional[ClientRegistry] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Application settings (defaults to the environment)
        registry: Pre-built client registry; built from settings at startup
            when omitted
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan context manager for startup/shutdown events.
        - Startup: Create storage clients, worker pool and coordinator
        - Shutdown: Drain the worker pool, then close every client
        """
        configure_logging(settings.service_name, settings.log_level)

        clients = registry if registry is not None else ClientRegistry.from_settings(settings)
        dispatcher = OperationDispatcher(settings.storage_worker_pool_size)
        app.state.coordinator = StorageCoordinator(
            settings,
            clients,
            dispatcher,
            validator=FileValidationService(settings)
        )
        logger.info(
            f"Storage gateway started - strategy: {settings.storage_upload_strategy.value}, "
            f"backends: {list(clients.enabled_clients())}"
        )

        yield

        dispatcher.shutdown()
        clients.close()
        logger.info("Storage gateway stopped")

    app = FastAPI(
        title="S3 Storage Gateway",
        description="Image storage fan-out across S3-compatible backends",
        version=__version__,
        lifespan=lifespan
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Metrics middleware (must be after CORS to track all requests)
    app.add_middleware(MetricsMiddleware)

    register_exception_handlers(app)

    # Include API routes
    app.include_router(api_router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "S3 Storage Gateway",
            "version": __version__,
            "environment": settings.environment
        }

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )

    return app


app = create_app()
