"""
Attempt Log API Routes

REST endpoints over the authentication audit log:
- GET /attempts: List recent attempts
- GET /attempts/stats: Aggregate success/failure counts
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from seam_api.dependencies import AppServices, get_services
from seam_api.schemas import AttemptInfo, AttemptListResponse, AttemptStatsResponse

# Create router
router = APIRouter(tags=["attempts"])


@router.get("/attempts", response_model=AttemptListResponse)
async def list_attempts(
    limit: int = Query(100, ge=1, le=1000),
    success: Optional[bool] = None,
    services: AppServices = Depends(get_services),
):
    """
    List logged attempts, newest first.

    Args:
        limit: Maximum number of attempts to return.
        success: Only successful (true) or failed (false) attempts.
    """
    attempts = services.attempt_log.get_attempts(limit=limit, success=success)

    return AttemptListResponse(
        attempts=[AttemptInfo(**a) for a in attempts],
        total=len(attempts),
    )


@router.get("/attempts/stats", response_model=AttemptStatsResponse)
async def attempt_stats(services: AppServices = Depends(get_services)):
    """Aggregate attempt statistics, including failures per error kind."""
    return AttemptStatsResponse(**services.attempt_log.get_stats())
