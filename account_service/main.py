"""
FastAPI application entry point for the account service.
"""
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import structlog
import uvicorn

from .core.config import Settings, get_settings
from .core.database import close_db_connections, create_engine, create_session_factory, init_models
from .core.exceptions import AccountServiceError
from .api.users import router as users_router
from .services.avatar_service import LocalAvatarStorage
from .services.notification_service import EmailService, NotificationDispatcher

logger = structlog.get_logger()

_STATUS_LABELS = {
    status.HTTP_400_BAD_REQUEST: "bad_request",
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_409_CONFLICT: "conflict",
}


def configure_logging(settings: Settings) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer() if settings.DEBUG else structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if settings.DEBUG else logging.INFO
        ),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.
    Handles startup and shutdown events.
    """
    settings: Settings = app.state.settings
    logger.info("Starting account service", version=settings.VERSION, environment=settings.ENVIRONMENT)

    try:
        await init_models(app.state.engine)
        yield

    finally:
        logger.info("Shutting down account service")

        # Let queued verification emails finish before the loop goes away
        await app.state.notification_dispatcher.drain()
        await close_db_connections(app.state.engine)

        logger.info("Account service shutdown complete")


def _error_body(code: int, message, label: Optional[str] = None) -> dict:
    return {
        "status": label or _STATUS_LABELS.get(code, "error"),
        "code": code,
        "message": message,
    }


def create_app(settings: Optional[Settings] = None, engine: Optional[AsyncEngine] = None) -> FastAPI:
    """
    Factory function to create the FastAPI app.

    Args:
        settings: Defaults to the cached environment settings
        engine: Database engine to use instead of one built from DATABASE_URL
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        description="Account lifecycle and credential verification service",
        version=settings.VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    if engine is None:
        engine = create_engine(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.notification_dispatcher = NotificationDispatcher(EmailService(settings))
    app.state.avatar_storage = LocalAvatarStorage(settings)

    @app.exception_handler(AccountServiceError)
    async def account_error_handler(request: Request, exc: AccountServiceError):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.status_code, exc.message, exc.classification),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors."""
        logger.warning("Validation error", errors=exc.errors(), path=request.url.path)
        body = _error_body(status.HTTP_400_BAD_REQUEST, "Validation error")
        body["errors"] = jsonable_encoder(exc.errors())
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.status_code, exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled error", path=request.url.path, error=str(exc), error_type=type(exc).__name__)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"),
        )

    @app.get("/health", tags=["health"])
    async def health_check():
        """Basic health check endpoint."""
        return {"status": "healthy", "service": "account-service", "version": settings.VERSION}

    app.include_router(users_router, prefix=settings.API_PREFIX)

    Path(settings.AVATAR_DIR).mkdir(parents=True, exist_ok=True)
    app.mount(
        settings.AVATAR_URL_PREFIX,
        StaticFiles(directory=settings.AVATAR_DIR),
        name="avatars",
    )

    return app


def run() -> None:
    """Run the server."""
    settings = get_settings()
    uvicorn.run(
        "account_service.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
        access_log=False,  # Use structured logging instead
    )


if __name__ == "__main__":
    run()
