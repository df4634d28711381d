# =============================================================================
# Auth API Routes
# =============================================================================
#
# Endpoints:
#   POST /api/auth/register  - Create account, set session cookie
#   POST /api/auth/login     - Sign in, set session cookie
#   POST /api/auth/logout    - Clear session cookie
#   GET  /api/auth/session   - Current session (or null)
#   POST /api/auth/validate  - Check a token
#
# =============================================================================

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from lexaccess.auth.policies import get_session
from lexaccess.auth.sessions import RegistrationData, SessionDescriptor, SessionManager, SessionResult
from lexaccess.auth.tokens import TokenCodec
from lexaccess.core.errors import TokenError

router = APIRouter(prefix="/api/auth", tags=["auth"])


# =============================================================================
# Request Models
# =============================================================================

class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str = ""
    password: str = ""
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    phone: str | None = None
    address: str | None = None
    role: str | None = None


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class ValidateRequest(BaseModel):
    token: str | None = None


def _sessions(request: Request) -> SessionManager:
    return request.app.state.sessions


def _session_response(result: SessionResult, message: str) -> JSONResponse:
    response = JSONResponse({
        "success": True,
        "session": result.session.model_dump(mode="json"),
        "message": message,
    })
    result.cookie.apply(response)
    return response


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/register")
async def register(data: RegisterRequest, request: Request):
    """Create an account and sign it in."""
    result = await _sessions(request).register(RegistrationData(**data.model_dump()))
    return _session_response(result, "Registration successful")


@router.post("/login")
async def login(data: LoginRequest, request: Request):
    result = await _sessions(request).login(data.email, data.password)
    return _session_response(result, "Login successful")


@router.post("/logout")
async def logout(request: Request):
    """
    Clear the session cookie.

    The token itself stays valid until it expires.
    """
    response = JSONResponse({"success": True})
    _sessions(request).logout().apply(response)
    return response


@router.get("/session")
async def session(current: SessionDescriptor | None = Depends(get_session)) -> dict[str, Any]:
    return {"session": current.model_dump(mode="json") if current else None}


@router.post("/validate")
async def validate(data: ValidateRequest, request: Request) -> dict[str, Any]:
    if not data.token:
        return {"valid": False}

    codec: TokenCodec = request.app.state.token_codec
    try:
        claims = codec.verify(data.token)
    except TokenError:
        return {"valid": False}
    return {"valid": True, "decoded": claims.model_dump(by_alias=True)}
