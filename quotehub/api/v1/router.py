"""
QuoteHub - API v1 Router
"""
from fastapi import APIRouter

from quotehub.api.v1.endpoints import quotes, providers

api_router = APIRouter()


# API v1 root endpoint
@api_router.get("/", tags=["API Info"])
async def api_root():
    """API v1 root - returns version info."""
    return {
        "api": "QuoteHub",
        "version": "v1",
        "status": "operational"
    }


# Include all endpoint routers
api_router.include_router(quotes.router, tags=["Quotes"])
api_router.include_router(providers.router, prefix="/providers", tags=["Provider Monitoring"])
