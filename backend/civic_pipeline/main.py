"""
Civic Issue Pipeline - Main FastAPI Application

Hosts the background issue pipeline (change-stream watchers, debounce,
periodic sweep) and the small admin HTTP surface on top of it.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config.settings import settings
from .api.routes import api_router
from .api.middleware import CorrelationIdMiddleware, register_error_handlers
from .repositories.async_mongo import (
    create_indexes, get_async_database, close_async_connection, async_health_check
)
from .repositories.document_store import MongoDocumentStore
from .services.pipeline_service import IssuePipeline
from .services.push_gateway import PushGatewayClient
from .utils.logger import setup_logging, get_logger

# Setup logging first
setup_logging()
logger = get_logger(__name__)

VERSION = "1.0.0"


# =============================================================================
# Application Lifecycle
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    
    Startup:
        - Creates MongoDB indexes
        - Builds the issue pipeline and starts it when enabled
    
    Shutdown:
        - Stops the pipeline (watchers, pending debounce tasks, sweep)
        - Closes database connections
    """
    logger.info("Starting Civic Issue Pipeline...")

    try:
        await create_indexes()
    except Exception as e:
        logger.error(f"Failed to create indexes: {e}")

    store = MongoDocumentStore(get_async_database())
    pipeline = IssuePipeline(store, PushGatewayClient())
    app.state.store = store
    app.state.pipeline = pipeline

    if settings.pipeline_enabled:
        await pipeline.start()
    else:
        logger.info("Issue pipeline disabled; serving admin endpoints only")

    logger.info("Application started successfully")

    yield

    logger.info("Shutting down...")
    await pipeline.stop()
    await close_async_connection()
    logger.info("Application shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    
    Returns:
        Configured FastAPI application instance
    """
    application = FastAPI(
        title="Civic Issue Pipeline",
        description="Auto-assignment, duplicate detection and push automation for citizen-reported issues",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )

    _configure_middleware(application)
    register_error_handlers(application)
    _configure_routes(application)

    return application


def _configure_middleware(app: FastAPI) -> None:
    """Configure application middleware."""
    # allow_credentials must be False when allowing all origins
    allow_all = settings.cors_origins.strip() == "*"

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_origins_list,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-Id"],
    )
    app.add_middleware(CorrelationIdMiddleware)


def _configure_routes(app: FastAPI) -> None:
    """Configure application routes."""
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health", tags=["Health"])
    async def health():
        """Database connectivity plus pipeline counters."""
        mongo_health = await async_health_check()
        pipeline = getattr(app.state, "pipeline", None)
        return {
            "status": "healthy" if mongo_health.get("status") == "healthy" else "degraded",
            "version": VERSION,
            "environment": settings.environment,
            "mongo": mongo_health,
            "pipeline": pipeline.health() if pipeline else None
        }


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()
