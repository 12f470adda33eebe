"""API Dependencies - Common dependencies for routes"""
from fastapi import Request

from ..domain.errors import ExternalServiceError
from ..repositories.document_store import DocumentStore
from ..services.pipeline_service import IssuePipeline


async def get_store_dep(request: Request) -> DocumentStore:
    """Document store built by the application lifespan"""
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise ExternalServiceError("Document store is not available")
    return store


async def get_pipeline_dep(request: Request) -> IssuePipeline:
    """
    Issue pipeline built by the application lifespan
    
    Available even when the background watchers are disabled, so the admin
    operations keep working.
    """
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise ExternalServiceError("Issue pipeline is not available")
    return pipeline
