"""
QuoteHub - Main Application Entry Point
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from quotehub.config import settings
from quotehub.api.v1.router import api_router
from quotehub.data_providers.orchestrator import QuoteOrchestrator
from quotehub.data_providers.provider_init import build_orchestrator
from quotehub.utils.exceptions import QuoteHubException, status_code_for
from quotehub.utils.logger import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events handler."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} ({settings.APP_ENV})...")

    orchestrator: Optional[QuoteOrchestrator] = getattr(app.state, "orchestrator", None)
    if orchestrator is None:
        orchestrator = build_orchestrator(settings)
        app.state.orchestrator = orchestrator

    await orchestrator.initialize()
    logger.info(f"Quote providers ready: {', '.join(p.name for p in orchestrator.providers)}")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")
    await orchestrator.shutdown()
    logger.info("Goodbye!")


async def quotehub_exception_handler(request: Request, exc: QuoteHubException) -> JSONResponse:
    """Render QuoteHub exceptions with their mapped HTTP status."""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} -> {status_code}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                **exc.to_dict(),
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "path": request.url.path,
            }
        },
    )


def create_application(orchestrator: Optional[QuoteOrchestrator] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        orchestrator: Prebuilt orchestrator; built from settings at startup when omitted
    """
    configure_logging()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Quote retrieval with provider fallback, rate limiting and circuit breaking",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    if orchestrator is not None:
        app.state.orchestrator = orchestrator

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(QuoteHubException, quotehub_exception_handler)

    # Include API router
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint for load balancers."""
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": "1.0.0"
        }

    return app


# Create the application instance
app = create_application()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "quotehub.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
