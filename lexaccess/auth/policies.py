"""
Policies - FastAPI dependencies for route authorization.

API endpoints use `Depends(require_session)` and get a 401. Payment-side
writes use `Depends(require_payment_service)` instead of a session. Pages
use `Depends(require_verified_page)`, which redirects to sign-in or to the
verification flow.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import Depends, HTTPException, Request

from lexaccess.auth.context import AuthContext
from lexaccess.auth.sessions import SessionDescriptor, SessionManager
from lexaccess.auth.verification import VerificationService
from lexaccess.config import Settings
from lexaccess.core.errors import NotFoundError

logger = logging.getLogger(__name__)


# =============================================================================
# Session lookup
# =============================================================================


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token(request: Request) -> str | None:
    """Session token from the auth cookie, if any."""
    settings = get_app_settings(request)
    return request.cookies.get(settings.auth_cookie_name) or None


async def get_session(
    request: Request,
    token: str | None = Depends(get_token),
) -> SessionDescriptor | None:
    sessions: SessionManager = request.app.state.sessions
    return await sessions.resolve_session(token)


async def get_auth_context(
    session: SessionDescriptor | None = Depends(get_session),
) -> AuthContext:
    return AuthContext.from_session(session)


# =============================================================================
# API policies
# =============================================================================


async def require_session(
    ctx: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """Any signed-in principal."""
    if not ctx.is_authenticated:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return ctx


async def require_payment_service(request: Request) -> None:
    """
    Server-to-server calls from the payment service.

    The caller must present the shared secret in the payment webhook header.
    With no secret configured every call is refused.
    """
    settings = get_app_settings(request)
    presented = request.headers.get(settings.payment_webhook_header) or ""
    expected = settings.payment_webhook_secret
    if not expected:
        logger.warning(f"Payment call to {request.url.path} refused: no webhook secret configured")
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not secrets.compare_digest(presented.encode(), expected.encode()):
        logger.warning(f"Payment call to {request.url.path} refused: bad or missing token")
        raise HTTPException(status_code=401, detail="Unauthorized")


# =============================================================================
# Page policies
# =============================================================================


class PageRedirect(Exception):
    """Raised by page dependencies; rendered as a redirect by the app."""

    def __init__(self, location: str):
        super().__init__(location)
        self.location = location


async def require_verified_page(
    request: Request,
    ctx: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """
    Verification check for feature pages.

    The gate has already checked the token signature; this is the profile
    lookup it does not do. "Verified" is whatever the verification tracker
    says, so a completed flag with a required field since emptied still
    sends the user back to VKYC.
    """
    settings = get_app_settings(request)
    if not ctx.is_authenticated:
        raise PageRedirect(settings.sign_in_path)

    verification: VerificationService = request.app.state.verification
    try:
        state = await verification.status(ctx.user_id)
    except NotFoundError:
        raise PageRedirect(settings.sign_in_path)
    if state.requires_verification:
        logger.debug(f"{ctx.user_id} not verified, redirecting {request.url.path}")
        raise PageRedirect(settings.verification_path)
    return ctx
