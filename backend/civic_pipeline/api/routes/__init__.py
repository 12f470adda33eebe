"""API Routes module"""
from fastapi import APIRouter

from .issues import router as issues_router
from .setup import router as setup_router

# Main API router
api_router = APIRouter()

# Include all route modules
api_router.include_router(issues_router, prefix="/issues", tags=["Issues"])
api_router.include_router(setup_router, prefix="/setup", tags=["Setup"])

__all__ = ["api_router"]
