"""
QuoteHub - Provider Status Endpoints
Monitor health, circuit breakers and cache of the quote providers
"""
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, Query
from loguru import logger

from quotehub.data_providers.orchestrator import QuoteOrchestrator
from quotehub.dependencies import get_orchestrator

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get(
    "/status",
    summary="Get all providers status",
    description="Get status of the orchestrator including provider order, rate limits and cache statistics."
)
async def get_providers_status(
    orchestrator: QuoteOrchestrator = Depends(get_orchestrator),
):
    """Get comprehensive status of all providers."""
    return {
        **orchestrator.get_status(),
        "timestamp": _now(),
    }


@router.get(
    "/health",
    summary="Get provider health",
    description="Run a health check against every provider and report its circuit state."
)
async def get_providers_health(
    orchestrator: QuoteOrchestrator = Depends(get_orchestrator),
):
    """Get health status for all providers."""
    health = await orchestrator.get_provider_health()
    healthy_count = sum(1 for h in health.values() if h["healthy"])

    return {
        "providers": health,
        "healthy_count": healthy_count,
        "total_providers": len(health),
        "timestamp": _now(),
    }


@router.get(
    "/circuit-breakers",
    summary="Get circuit breaker status",
    description="Get circuit breaker snapshots for all providers."
)
async def get_circuit_breakers(
    orchestrator: QuoteOrchestrator = Depends(get_orchestrator),
):
    """Get circuit breaker status for all providers."""
    return {
        "circuit_breakers": orchestrator.get_circuit_breaker_status(),
        "timestamp": _now(),
    }


@router.post(
    "/circuit-breakers/{provider}/reset",
    summary="Reset circuit breaker",
    description="Force a provider's circuit breaker closed."
)
async def reset_circuit_breaker(
    provider: str,
    orchestrator: QuoteOrchestrator = Depends(get_orchestrator),
):
    """Reset the circuit breaker for a provider."""
    snapshot = await orchestrator.reset_circuit_breaker(provider)
    logger.info(f"Circuit breaker reset for {provider} via API")

    return {
        "success": True,
        "message": f"Circuit breaker reset for {provider}",
        "circuit_breaker": snapshot,
    }


@router.post(
    "/cache/clear",
    summary="Clear quote cache",
    description="Drop all cached quotes, or only the entries containing the given symbols."
)
async def clear_cache(
    symbols: Optional[str] = Query(None, description="Comma-separated symbols to invalidate"),
    orchestrator: QuoteOrchestrator = Depends(get_orchestrator),
):
    """Clear the quote cache."""
    cleared = await orchestrator.clear_cache(symbols.split(",") if symbols else None)

    return {
        "success": True,
        "cleared_entries": cleared,
    }
