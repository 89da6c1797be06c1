from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional

from bizforge import __version__
from bizforge.core.config import settings
from bizforge.core.exceptions import BizForgeError, error_response
from bizforge.core.logging_config import logger, generate_request_id, get_request_id
from bizforge.core.middleware import RequestLoggingMiddleware, RequestSizeLimitMiddleware
from bizforge.api.v1.router import api_router
from bizforge.api.v1.endpoints import progress_ws
from bizforge.modules.generators import default_collaborators
from bizforge.modules.generators.base import CollaboratorSuite
from bizforge.modules.orchestrator.generation_orchestrator import GenerationOrchestrator
from bizforge.modules.orchestrator.progress_broadcaster import ProgressBroadcaster
from bizforge.services.orchestration_jobs import OrchestrationJobManager


def create_app(collaborators: Optional[CollaboratorSuite] = None) -> FastAPI:
    """Build the ASGI app. Tests pass their own collaborators."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan event handler for startup and shutdown"""
        logger.info("=" * 60)
        logger.info(f"Starting {settings.APP_NAME}...")
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        logger.info(f"Generators: {'Claude' if settings.ai_generators_enabled else 'templates'}")
        logger.info("=" * 60)

        broadcaster = ProgressBroadcaster()
        orchestrator = GenerationOrchestrator(
            collaborators=collaborators or default_collaborators(),
            broadcaster=broadcaster,
        )
        app.state.broadcaster = broadcaster
        app.state.job_manager = OrchestrationJobManager(orchestrator)

        yield

        logger.info(f"Shutting down {settings.APP_NAME}...")
        await app.state.job_manager.shutdown()
        await broadcaster.close()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Orchestrates multi-stage generation of business applications with live progress",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        redirect_slashes=False,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Response-Time"],
    )

    @app.exception_handler(BizForgeError)
    async def bizforge_exception_handler(request: Request, exc: BizForgeError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code}: {exc.message}", exc_info=True)
        return JSONResponse(status_code=exc.status_code, content=error_response(exc))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        error_id = get_request_id() or generate_request_id()
        logger.error(f"Global exception [{error_id}]: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "error_id": error_id,
                "message": str(exc) if settings.DEBUG else "An error occurred",
            }
        )

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint"""
        return {
            "message": f"Welcome to {settings.APP_NAME}",
            "version": __version__,
            "docs": "/docs",
            "health": f"/api/{settings.API_VERSION}/health",
        }

    app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")
    app.include_router(progress_ws.router)
    return app


app = create_app()


def run() -> None:
    import uvicorn
    uvicorn.run(
        "bizforge.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )


if __name__ == "__main__":
    run()
