"""
Triage Desk - FastAPI Backend
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from triage_desk import __version__
from triage_desk.config import get_settings
from triage_desk.container import Container, build_container
from triage_desk.exceptions import (
    BatchInProgressError,
    InvalidTransitionError,
    MalformedResponseError,
    RateLimitedError,
    ResourceNotFoundError,
    TransientExternalFailure,
    TriageError,
)
from triage_desk.middleware.logging_middleware import LoggingMiddleware
from triage_desk.routes import drafts, health, schedule, tickets
from triage_desk.utils.logger import get_logger

logger = get_logger(__name__)

ERROR_STATUS = [
    (ResourceNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (BatchInProgressError, status.HTTP_409_CONFLICT),
    (RateLimitedError, status.HTTP_429_TOO_MANY_REQUESTS),
    (TransientExternalFailure, status.HTTP_503_SERVICE_UNAVAILABLE),
    (MalformedResponseError, status.HTTP_502_BAD_GATEWAY),
]


def _status_for(exc: TriageError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def triage_error_handler(request: Request, exc: TriageError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={
            "error": type(exc).__name__,
            "message": exc.message,
            "details": exc.details,
        },
    )


def create_app(container: Optional[Container] = None, start_scheduler: bool = True) -> FastAPI:
    """
    Build the FastAPI application

    Args:
        container: Pre-wired container (built at startup when omitted)
        start_scheduler: Register the wall-clock batch triggers on startup
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "container", None) is None:
            app.state.container = build_container()
        if start_scheduler:
            app.state.container.scheduler.start()
        logger.info(f"Triage Desk {__version__} started")
        yield
        app.state.container.scheduler.stop()
        logger.info("Triage Desk stopped")

    app = FastAPI(
        title="Triage Desk",
        description="AI-assisted ticket triage and draft review",
        version=__version__,
        lifespan=lifespan
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    app.add_exception_handler(TriageError, triage_error_handler)

    app.include_router(tickets.router)
    app.include_router(drafts.router)
    app.include_router(drafts.casebook_router)
    app.include_router(schedule.router)
    app.include_router(health.router)

    @app.get("/")
    async def root():
        return {"message": "Triage Desk API", "version": __version__}

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "triage_desk.main:create_app",
        factory=True,
        host=settings.fastapi_host,
        port=settings.fastapi_port
    )
