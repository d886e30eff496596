"""
QuoteHub - Quote Endpoints
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from loguru import logger

from quotehub.data_providers.orchestrator import QuoteOrchestrator
from quotehub.dependencies import get_orchestrator

router = APIRouter()


@router.get(
    "/quotes",
    summary="Get quotes",
    description="Get quotes for a comma-separated list of symbols, with provider fallback and caching."
)
async def get_quotes(
    symbols: str = Query(..., description="Comma-separated list of symbols"),
    deadline: Optional[float] = Query(None, gt=0, description="Budget in seconds for the whole request"),
    orchestrator: QuoteOrchestrator = Depends(get_orchestrator),
):
    """
    Get quotes for multiple symbols.

    Invalid requests, provider exhaustion and deadline expiry are raised as
    QuoteHub exceptions and rendered by the application's exception handler.
    """
    symbol_list = symbols.split(",")
    logger.debug(f"Quote request for {symbols} (deadline={deadline})")

    result = await orchestrator.get_quotes(symbol_list, deadline=deadline)
    return result.to_dict()
