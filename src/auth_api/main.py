"""FastAPI application factory.

Creates the FastAPI app with lifespan management, exception handlers,
and OpenAPI metadata.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from auth_api import __version__
from auth_api.core.background import task_runner
from auth_api.core.config import get_settings
from auth_api.core.database import dispose_engine, init_engine
from auth_api.core.errors import AccountLockedError, AuthError, InvalidCredentialsError
from auth_api.core.logging import setup_logging
from auth_api.schemas.common import ErrorResponse


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifecycle: init engine on startup, flush pending mail and dispose on shutdown."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_dir)
    init_engine(settings.database_url, echo=False, schema=settings.database_schema)

    yield

    await task_runner.drain()
    await dispose_engine()


def auth_error_response(exc: AuthError) -> JSONResponse:
    """Translate a domain error into its HTTP status and ``ErrorResponse`` body."""
    body = ErrorResponse(detail=exc.message, code=exc.code)
    headers: dict[str, str] = {}
    if isinstance(exc, InvalidCredentialsError):
        body.remaining_attempts = exc.remaining_attempts
        headers["WWW-Authenticate"] = "Bearer"
    elif isinstance(exc, AccountLockedError):
        body.locked_until = exc.locked_until
        headers["Retry-After"] = str(exc.retry_after_seconds)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(mode="json", exclude_none=True),
        headers=headers or None,
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Auth API",
        description="Authentication, token lifecycle, account lockout, and role-based access control",
        version=__version__,
        lifespan=lifespan,
    )

    # Register exception handlers
    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
        return auth_error_response(exc)

    # Register middleware and routers
    from auth_api.api.router import create_router, setup_middleware

    setup_middleware(app, settings)
    app.include_router(create_router(settings))

    return app
