"""Issues API - Admin operations on the issue pipeline"""
from typing import List
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..deps import get_pipeline_dep
from ...domain.models import DuplicateMatch
from ...services.pipeline_service import IssuePipeline
from ...utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================

class BulkAssignResponse(BaseModel):
    """Outcome of a bulk auto-assign run"""
    assigned: int


class SuccessResponse(BaseModel):
    success: bool


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/auto-assign", response_model=BulkAssignResponse)
async def bulk_auto_assign(pipeline: IssuePipeline = Depends(get_pipeline_dep)):
    """
    Route every unassigned issue through the active assignment rules.
    
    Safe to run repeatedly; a second run assigns nothing new.
    """
    assigned = await pipeline.run_bulk_auto_assign()
    logger.info(f"Manual bulk auto-assign routed {assigned} issue(s)")
    return BulkAssignResponse(assigned=assigned)


@router.get("/{issue_id}/duplicates", response_model=List[DuplicateMatch])
async def get_duplicates(issue_id: str, pipeline: IssuePipeline = Depends(get_pipeline_dep)):
    """Possible duplicates of an issue, best match first"""
    return await pipeline.find_duplicates(issue_id)


@router.delete("/{issue_id}/duplicate-flag", response_model=SuccessResponse)
async def clear_duplicate_flag(issue_id: str, pipeline: IssuePipeline = Depends(get_pipeline_dep)):
    """Dismiss the duplicate flag on an issue"""
    await pipeline.clear_duplicate_flag(issue_id)
    return SuccessResponse(success=True)
