"""
Authentication - session tokens, passwords, sessions and verification.

Design principles:
1. The signed cookie token is the session; there is no session table
2. Every credential failure looks the same to the caller
3. Routes declare what they need with a single dependency
"""

from lexaccess.auth.context import AuthContext
from lexaccess.auth.passwords import PasswordHasher, validate_password
from lexaccess.auth.policies import (
    PageRedirect,
    get_auth_context,
    get_session,
    require_payment_service,
    require_session,
    require_verified_page,
)
from lexaccess.auth.sessions import (
    CookieDirective,
    RegistrationData,
    SessionDescriptor,
    SessionManager,
    SessionResult,
)
from lexaccess.auth.tokens import TokenClaims, TokenCodec
from lexaccess.auth.verification import (
    DocumentInput,
    VerificationService,
    VerificationState,
    evaluate_verification,
)
from lexaccess.auth.routes import router as auth_router

__all__ = [
    # Dependencies
    "require_payment_service",
    "require_session",
    "require_verified_page",
    "get_session",
    "get_auth_context",
    "AuthContext",
    "PageRedirect",
    # Tokens & passwords
    "TokenClaims",
    "TokenCodec",
    "PasswordHasher",
    "validate_password",
    # Sessions
    "CookieDirective",
    "RegistrationData",
    "SessionDescriptor",
    "SessionManager",
    "SessionResult",
    # Verification
    "DocumentInput",
    "VerificationService",
    "VerificationState",
    "evaluate_verification",
    # Router
    "auth_router",
]
