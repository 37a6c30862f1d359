"""
Multigov API Dependencies

FastAPI dependency injection for the governor.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from multigov.services.governor import GovernorService

# =============================================================================
# Governor
# =============================================================================

def get_governor(request: Request) -> GovernorService:
    """Get the GovernorService instance from app state."""
    if not hasattr(request.app.state, "governor"):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Governor not initialized",
        )
    return request.app.state.governor


GovernorDep = Annotated[GovernorService, Depends(get_governor)]
