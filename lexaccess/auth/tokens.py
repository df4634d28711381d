# =============================================================================
# Session Token Codec
# =============================================================================
#
# Compact signed session tokens:
#   - issue: {userId, email, iat, exp}, HMAC-signed, 7-day lifetime
#   - verify: signature, structure, expiry
#
# There is no session table and no revocation list. Possession of a correctly
# signed, unexpired token IS the session; logout only clears the cookie.
#
# =============================================================================

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable

import jwt
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from lexaccess.config import Settings
from lexaccess.core.errors import ConfigurationError, TokenExpiredError, TokenInvalidError
from lexaccess.core.utils import utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Models
# =============================================================================

class TokenClaims(BaseModel):
    """Session token payload."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    email: str
    iat: int  # issued at, unix seconds
    exp: int  # expires at, unix seconds


# =============================================================================
# Codec
# =============================================================================

class TokenCodec:
    """
    Signs and verifies session tokens.

    The signing key is read once at construction and never changes. A codec
    cannot be built without one, so a missing key surfaces as a
    ConfigurationError when the app starts rather than on the first login.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        lifetime: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = utc_now,
    ):
        if not secret_key:
            raise ConfigurationError("JWT signing key is not configured (set JWT_SECRET_KEY)")
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.lifetime = lifetime
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ) -> TokenCodec:
        return cls(
            secret_key=settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            lifetime=timedelta(days=settings.session_token_expire_days),
            clock=clock,
        )

    def issue(self, principal_id: str, email: str) -> str:
        """Create a signed token for a principal, valid for `lifetime`."""
        issued_at = int(self._clock().timestamp())
        payload = {
            "userId": principal_id,
            "email": email,
            "iat": issued_at,
            "exp": issued_at + int(self.lifetime.total_seconds()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """
        Decode and validate a token.

        Returns:
            TokenClaims with validated claims

        Raises:
            TokenExpiredError: Signature is good but the token has lapsed
            TokenInvalidError: Bad signature, malformed payload or missing claims
        """
        try:
            # Expiry is checked below against our own clock
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": ["userId", "iat", "exp"],
                },
            )
        except jwt.InvalidTokenError as e:
            raise TokenInvalidError(f"Invalid token: {e}")

        try:
            claims = TokenClaims.model_validate(payload)
        except PydanticValidationError as e:
            raise TokenInvalidError(f"Malformed token claims: {e.error_count()} errors")

        if self._clock().timestamp() >= claims.exp:
            raise TokenExpiredError("Token has expired")

        return claims
