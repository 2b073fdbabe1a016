"""Root API router with /api/v1 prefix and middleware registration."""

from fastapi import APIRouter, FastAPI

from auth_api.api.middleware import SecurityHeadersMiddleware, ThrottleMiddleware, build_throttle_rules, setup_cors
from auth_api.core.config import Settings


def create_router(settings: Settings) -> APIRouter:
    """Create the root API router with all sub-routers included.

    Args:
        settings: Application settings.

    Returns:
        Configured API router.
    """
    from auth_api.api.v1.auth import router as auth_router
    from auth_api.api.v1.users import router as users_router

    root_router = APIRouter(prefix=settings.api_v1_prefix)
    root_router.include_router(auth_router)
    root_router.include_router(users_router)
    return root_router


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware on the FastAPI app.

    Args:
        app: The FastAPI application.
        settings: Application settings.
    """
    setup_cors(app, settings)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        ThrottleMiddleware,
        rules=build_throttle_rules(settings),
        window_seconds=settings.throttle_ttl_seconds,
        trusted_proxy_headers=settings.trusted_proxy_header_list,
    )
