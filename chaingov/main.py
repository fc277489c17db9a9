"""ChainGov API - Main Application"""
import structlog
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chaingov.config import get_settings
from chaingov.api.v1.router import api_router
from chaingov.models.database import init_db, close_db
from chaingov.services.governance_service import (
    GovernanceService,
    get_governance_service,
    close_governance_service,
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting ChainGov API", version=settings.app_version)

    await init_db()
    logger.info("Database initialized")

    # Restore engine and ledger from the database before serving
    service = await get_governance_service()
    logger.info(
        "Governance service ready",
        height=service.current_height(),
        proposals=service.engine.proposal_count,
        clock_mode=settings.clock_mode,
    )

    yield

    await close_governance_service()
    await close_db()
    logger.info("ChainGov API shutdown complete")


def create_app() -> FastAPI:
    """Create FastAPI application"""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="API for token-weighted proposal voting",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health_check(service: GovernanceService = Depends(get_governance_service)):
        """Health check endpoint"""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "height": service.current_height(),
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "chaingov.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
