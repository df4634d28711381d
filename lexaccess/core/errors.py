"""
Error taxonomy for lexaccess.

Every error carries an HTTP status and a client-safe message. The detail
passed to the constructor is for server-side logs only and is never rendered
to the client.
"""

from __future__ import annotations


class LexAccessError(Exception):
    """Base exception for all lexaccess errors."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.public_message
        super().__init__(self.detail)


class ConfigurationError(LexAccessError):
    """Server is misconfigured (e.g. no signing key)."""

    status_code = 500
    public_message = "Server configuration error"


class InvalidCredentialsError(LexAccessError):
    """Unknown email, account without a password, or wrong password."""

    status_code = 401
    public_message = "Invalid credentials"


class TokenError(LexAccessError):
    """Base exception for token errors."""

    status_code = 401
    public_message = "Unauthorized"


class TokenExpiredError(TokenError):
    """Token has expired."""
    pass


class TokenInvalidError(TokenError):
    """Token is invalid or malformed."""
    pass


class ConflictError(LexAccessError):
    """
    Resource already exists, or a write lost to a concurrent one.

    The detail stays in the logs; callers see `public_message`.
    """

    status_code = 409
    public_message = "Resource already exists"

    def __init__(self, detail: str | None = None, public_message: str | None = None):
        if public_message:
            self.public_message = public_message
        super().__init__(detail)


class ValidationError(LexAccessError):
    """
    Required input is missing or malformed.

    Unlike the auth errors, the detail here is safe to show the caller.
    """

    status_code = 400
    public_message = "Invalid request"

    def __init__(self, detail: str | None = None, missing_fields: list[str] | None = None):
        self.missing_fields = missing_fields or []
        if detail is None and self.missing_fields:
            detail = f"Missing required fields: {', '.join(self.missing_fields)}"
        super().__init__(detail)
        self.public_message = self.detail


class NotFoundError(LexAccessError):
    """Resource or profile does not exist."""

    status_code = 404
    public_message = "Not found"

    def __init__(self, detail: str | None = None):
        super().__init__(detail)
        self.public_message = self.detail
