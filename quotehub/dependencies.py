"""
QuoteHub - Dependencies
Dependency injection for FastAPI endpoints
"""
from fastapi import HTTPException, Request, status

from quotehub.data_providers.orchestrator import QuoteOrchestrator


def get_orchestrator(request: Request) -> QuoteOrchestrator:
    """
    Quote orchestrator dependency.

    Returns:
        The orchestrator created at application startup

    Raises:
        HTTPException: If the application has not finished starting up
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Quote providers are not initialized",
        )
    return orchestrator
