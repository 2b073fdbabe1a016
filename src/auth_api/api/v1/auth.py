"""Authentication API endpoints.

POST /auth/register, /auth/login, /auth/refresh, /auth/verify-email,
/auth/resend-verification, /auth/forgot-password, /auth/reset-password,
/auth/change-password; GET /auth/me, /auth/login-history,
/auth/verify-email/{token}, /auth/reset-password/{token}, /health.
"""

from typing import Annotated
from urllib.parse import quote, urlencode

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from auth_api.api.middleware import get_client_ip
from auth_api.core.config import Settings, get_settings
from auth_api.core.dependencies import get_async_session, get_current_user, get_mail_dispatcher
from auth_api.core.errors import AuthError
from auth_api.lib.mailer import MailDispatcher
from auth_api.models.user import User
from auth_api.schemas.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginAttemptResponse,
    LoginRequest,
    ProfileResponse,
    RefreshRequest,
    RegisterRequest,
    ResendVerificationRequest,
    ResetPasswordRequest,
    TokenPair,
    VerifyEmailRequest,
)
from auth_api.schemas.common import MessageResponse
from auth_api.services import auth_service, lockout_service, token_service, verification_service

router = APIRouter(tags=["auth"])

REGISTERED_MESSAGE = "Registration successful. Please check your email to verify your account."


def get_request_ip(request: Request, settings: Annotated[Settings, Depends(get_settings)]) -> str:
    """Client IP address, honoring the configured trusted proxy headers."""
    return get_client_ip(request, settings.trusted_proxy_header_list)


@router.get("/health", status_code=200)
async def health_check() -> dict:
    """Health check endpoint (no authentication required)."""
    return {"status": "healthy"}


@router.post("/auth/register", response_model=MessageResponse, status_code=201)
async def register(
    request: RegisterRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
    mailer: Annotated[MailDispatcher, Depends(get_mail_dispatcher)],
) -> MessageResponse:
    """Create an account and send the verification email."""
    await auth_service.register(
        session,
        username=request.username,
        email=request.email,
        password=request.password,
        settings=settings,
        mailer=mailer,
    )
    return MessageResponse(message=REGISTERED_MESSAGE)


@router.post("/auth/login", response_model=TokenPair)
async def login(
    request: LoginRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
    mailer: Annotated[MailDispatcher, Depends(get_mail_dispatcher)],
    ip_address: Annotated[str, Depends(get_request_ip)],
) -> TokenPair:
    """Authenticate with email and password and return JWT tokens."""
    return await auth_service.login(session, request.email, request.password, ip_address, settings, mailer)


@router.post("/auth/refresh", response_model=TokenPair)
async def refresh_token(
    request: RefreshRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> TokenPair:
    """Exchange a refresh token for a new pair. The presented token is revoked."""
    return await token_service.refresh_tokens(session, request.refresh_token, settings)


@router.post("/auth/verify-email", response_model=MessageResponse)
async def verify_email(
    request: VerifyEmailRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    await verification_service.verify_email(session, request.token)
    return MessageResponse(message=verification_service.EMAIL_VERIFIED_MESSAGE)


@router.get("/auth/verify-email/{token}", response_class=RedirectResponse, status_code=302)
async def verify_email_link(
    token: str,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> RedirectResponse:
    """Verify from the emailed link and redirect to the frontend login page."""
    frontend = settings.frontend_url.rstrip("/")
    try:
        await verification_service.verify_email(session, token)
    except AuthError as e:
        query = urlencode({"verified": "false", "error": e.message}, quote_via=quote)
        return RedirectResponse(f"{frontend}/login?{query}", status_code=302)
    return RedirectResponse(f"{frontend}/login?verified=true", status_code=302)


@router.post("/auth/resend-verification", response_model=MessageResponse)
async def resend_verification(
    request: ResendVerificationRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
    mailer: Annotated[MailDispatcher, Depends(get_mail_dispatcher)],
) -> MessageResponse:
    message = await verification_service.resend_verification(session, request.email, settings, mailer)
    return MessageResponse(message=message)


@router.post("/auth/forgot-password", response_model=MessageResponse)
async def forgot_password(
    request: ForgotPasswordRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
    mailer: Annotated[MailDispatcher, Depends(get_mail_dispatcher)],
) -> MessageResponse:
    """Request a password reset link. The response never reveals whether the email exists."""
    message = await verification_service.forgot_password(session, request.email, settings, mailer)
    return MessageResponse(message=message)


@router.get("/auth/reset-password/{token}", response_class=RedirectResponse, status_code=302)
async def reset_password_link(
    token: str,
    settings: Annotated[Settings, Depends(get_settings)],
) -> RedirectResponse:
    """Forward the emailed reset link to the frontend reset form."""
    frontend = settings.frontend_url.rstrip("/")
    return RedirectResponse(f"{frontend}/reset-password?{urlencode({'token': token})}", status_code=302)


@router.post("/auth/reset-password", response_model=MessageResponse)
async def reset_password(
    request: ResetPasswordRequest,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> MessageResponse:
    message = await verification_service.reset_password(session, request.token, request.new_password, settings)
    return MessageResponse(message=message)


@router.post("/auth/change-password", response_model=MessageResponse)
async def change_password(
    request: ChangePasswordRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> MessageResponse:
    """Change the authenticated user's password."""
    message = await auth_service.change_password(
        session,
        current_user.id,
        request.current_password,
        request.new_password,
        settings,
    )
    return MessageResponse(message=message)


@router.get("/auth/me", response_model=ProfileResponse)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> ProfileResponse:
    """Get the currently authenticated user's profile."""
    return auth_service.build_profile(current_user)


@router.get("/auth/login-history", response_model=list[LoginAttemptResponse])
async def login_history(
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    limit: Annotated[int, Query(ge=1, le=100)] = lockout_service.DEFAULT_HISTORY_LIMIT,
) -> list[LoginAttemptResponse]:
    """The authenticated user's most recent login attempts, newest first."""
    attempts = await lockout_service.get_login_history(session, current_user.id, limit)
    return [LoginAttemptResponse.model_validate(a) for a in attempts]
