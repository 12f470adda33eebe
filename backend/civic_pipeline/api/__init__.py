"""API module - Routes and dependencies"""
from .deps import get_pipeline_dep, get_store_dep

__all__ = ["get_pipeline_dep", "get_store_dep"]
