"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from labmaint.actions import LabActions
from labmaint.api.routes import router
from labmaint.config import get_settings
from labmaint.errors import InconsistentState, StorageUnavailable
from labmaint.services import build_services
from labmaint.state.manager import StateManager, create_state_manager
from labmaint.utils.logging import get_logger, setup_logging

# Setup logging first
setup_logging()
logger = get_logger(__name__)


def create_app(state_manager: StateManager | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        state_manager: Storage to use; the configured backend when omitted
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        logger.info("application_starting", storage_backend=settings.storage_backend)

        state = state_manager or create_state_manager(settings)
        await state.connect()
        app.state.services = build_services(state, settings)
        app.state.actions = LabActions(app.state.services, settings)
        logger.info("services_initialized")

        yield

        logger.info("application_shutting_down")
        await state.disconnect()

    app = FastAPI(
        title="Lab Maintenance Service",
        description="Inventory, wear-part and maintenance tracking for an optical lab",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StorageUnavailable)
    async def storage_unavailable_handler(
        request: Request, exc: StorageUnavailable
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"success": False, "message": exc.message, "error": exc.to_dict()},
        )

    @app.exception_handler(InconsistentState)
    async def inconsistent_state_handler(
        request: Request, exc: InconsistentState
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": exc.message, "error": exc.to_dict()},
        )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "labmaint"}

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Lab Maintenance Service API",
            "docs": "/docs",
            "health": "/health",
        }

    app.include_router(router, prefix="/api/v1", tags=["api"])
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "labmaint.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        reload=settings.environment == "development",
    )
