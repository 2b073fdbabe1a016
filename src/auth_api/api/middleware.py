"""CORS, request throttling, and security headers middleware."""

import ipaddress
import math
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from auth_api.core.config import Settings
from auth_api.schemas.common import ErrorResponse

_DEFAULT_TRUSTED_HEADERS = ["X-Forwarded-For", "X-Real-IP"]

# Endpoints that accept credentials or trigger mail, relative to the API prefix
CREDENTIAL_PATHS = (
    "/auth/login",
    "/auth/register",
    "/auth/forgot-password",
    "/auth/reset-password",
    "/auth/resend-verification",
)


def _normalize_ip(value: str) -> str | None:
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def get_client_ip(request: Request, trusted_headers: list[str] | None = None) -> str:
    """Extract the client IP recorded in login history and used for throttling.

    Trusted headers are checked in order; for X-Forwarded-For the leftmost
    entry is used. Values that are not IP addresses are ignored.

    Args:
        request: The incoming Starlette request.
        trusted_headers: Ordered header names to check. Defaults to
            ["X-Forwarded-For", "X-Real-IP"].

    Returns:
        The normalized client IP, the socket peer address, or "unknown".
    """
    headers = trusted_headers if trusted_headers is not None else _DEFAULT_TRUSTED_HEADERS

    for header in headers:
        value = request.headers.get(header, "")
        if header.lower() == "x-forwarded-for":
            value = value.split(",")[0]
        ip = _normalize_ip(value)
        if ip is not None:
            return ip

    if request.client:
        return request.client.host
    return "unknown"


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Configure CORS middleware on the FastAPI app.

    The frontend origin is always allowed in addition to ``cors_origins``.

    Args:
        app: The FastAPI application.
        settings: Application settings.
    """
    origins = list(dict.fromkeys([*settings.cors_origin_list, settings.frontend_url.rstrip("/")]))
    kwargs: dict[str, Any] = {
        "allow_origins": origins,
        "allow_credentials": True,
        "allow_methods": ["*"],
        "allow_headers": ["*"],
    }
    app.add_middleware(CORSMiddleware, **kwargs)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses. Token responses are never cached."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


@dataclass(frozen=True)
class ThrottleRule:
    """A request budget per client IP.

    A rule with ``paths`` keeps a separate budget for each listed path and
    ignores all others; a rule without paths covers every request with one
    shared budget.
    """

    name: str
    limit: int
    paths: frozenset[str] = frozenset()

    def bucket(self, path: str) -> str | None:
        """Return the budget a path counts against, or None if the rule does not apply."""
        if not self.paths:
            return "*"
        return path if path in self.paths else None


def build_throttle_rules(settings: Settings) -> list[ThrottleRule]:
    """Stricter per-endpoint limits on credential endpoints, plus the general limit."""
    prefix = settings.api_v1_prefix.rstrip("/")
    return [
        ThrottleRule(
            name="credentials",
            limit=settings.auth_throttle_limit,
            paths=frozenset(f"{prefix}{path}" for path in CREDENTIAL_PATHS),
        ),
        ThrottleRule(name="general", limit=settings.throttle_limit),
    ]


class ThrottleMiddleware(BaseHTTPMiddleware):
    """In-memory sliding-window request throttling keyed by client IP.

    A request must fit within every rule that applies to it; a rejected
    request does not consume budget.
    """

    def __init__(
        self,
        app: ASGIApp,
        rules: list[ThrottleRule],
        window_seconds: int = 60,
        trusted_proxy_headers: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.rules = rules
        self.window_seconds = window_seconds
        self.trusted_proxy_headers = trusted_proxy_headers
        self._hits: dict[tuple[str, str, str], list[float]] = defaultdict(list)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Check every applicable budget and process the request.

        Args:
            request: The incoming request.
            call_next: The next middleware/handler.

        Returns:
            Response, or 429 with ``Retry-After`` if a budget is exhausted.
        """
        client_ip = get_client_ip(request, self.trusted_proxy_headers)
        path = request.url.path
        now = time.time()
        window_start = now - self.window_seconds

        keys: list[tuple[str, str, str]] = []
        for rule in self.rules:
            bucket = rule.bucket(path)
            if bucket is None:
                continue
            key = (rule.name, bucket, client_ip)
            hits = [t for t in self._hits[key] if t > window_start]
            self._hits[key] = hits
            if len(hits) >= rule.limit:
                retry_after = max(1, math.ceil(hits[0] + self.window_seconds - now))
                logger.warning(f"Throttled {client_ip} on {path} by {rule.name} limit")
                body = ErrorResponse(detail="Rate limit exceeded", code="rate_limited")
                return JSONResponse(
                    status_code=429,
                    content=body.model_dump(exclude_none=True),
                    headers={"Retry-After": str(retry_after)},
                )
            keys.append(key)

        for key in keys:
            self._hits[key].append(now)
        return await call_next(request)
