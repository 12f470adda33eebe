"""Setup API - Seed default configuration"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..deps import get_store_dep
from ...repositories.document_store import DocumentStore
from ...services.seed_service import SeedService

router = APIRouter()


class SeedResponse(BaseModel):
    """Rows created by a seed run"""
    departments: int
    rules: int


@router.post("/seed-defaults", response_model=SeedResponse)
async def seed_defaults(store: DocumentStore = Depends(get_store_dep)):
    """Create the default departments and category rules that are missing"""
    counts = await SeedService(store).seed_defaults()
    return SeedResponse(**counts)
