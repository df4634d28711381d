"""
Session management: register, login, logout, resolve.

The session is the signed token in the `auth-token` cookie. This module
turns credentials into tokens plus cookie directives, and tokens back into
fresh session descriptors.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel
from starlette.responses import Response

from lexaccess.auth.passwords import PasswordHasher, validate_password
from lexaccess.auth.tokens import TokenCodec
from lexaccess.config import Settings
from lexaccess.core.roles import KycType, UserRole, is_professional, kyc_type_for, parse_role
from lexaccess.core.errors import (
    ConflictError,
    InvalidCredentialsError,
    TokenExpiredError,
    TokenInvalidError,
    ValidationError,
)
from lexaccess.core.models import Profile
from lexaccess.storage.base import DuplicateKeyError, ProfileRepository

logger = logging.getLogger(__name__)


# =============================================================================
# Models
# =============================================================================


class CookieDirective(BaseModel):
    """Instructions for setting (or clearing) the session cookie."""

    name: str
    value: str
    max_age: int
    secure: bool = False
    httponly: bool = True
    samesite: str = "strict"
    path: str = "/"

    def apply(self, response: Response) -> None:
        response.set_cookie(
            key=self.name,
            value=self.value,
            max_age=self.max_age,
            path=self.path,
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,
        )

    @classmethod
    def issue(cls, token: str, settings: Settings) -> CookieDirective:
        return cls(
            name=settings.auth_cookie_name,
            value=token,
            max_age=settings.session_max_age_seconds,
            secure=settings.is_production,
        )

    @classmethod
    def clear(cls, settings: Settings) -> CookieDirective:
        return cls(
            name=settings.auth_cookie_name,
            value="",
            max_age=0,
            secure=settings.is_production,
        )


class SessionDescriptor(BaseModel):
    """What the client learns about the signed-in principal."""

    id: str
    email: str
    name: str
    role: UserRole
    kyc_type: KycType
    can_upload_reports: bool
    is_professional: bool
    vkyc_completed: bool

    @classmethod
    def from_profile(cls, profile: Profile) -> SessionDescriptor:
        return cls(
            id=profile.id,
            email=profile.email,
            name=profile.display_name,
            role=profile.role,
            kyc_type=profile.kyc_type,
            can_upload_reports=profile.can_upload_reports,
            is_professional=profile.is_professional,
            vkyc_completed=profile.vkyc_completed,
        )


class SessionResult(BaseModel):
    """A freshly issued session."""

    session: SessionDescriptor
    token: str
    cookie: CookieDirective


class RegistrationData(BaseModel):
    """Registration input, already parsed from the request."""

    email: str
    password: str
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    address: str | None = None
    role: str | None = None


# =============================================================================
# Session Manager
# =============================================================================


class SessionManager:
    """
    Orchestrates credential checks, token issuance and session lookup.

    Holds no per-request state; one instance serves the whole process.
    """

    def __init__(
        self,
        profiles: ProfileRepository,
        codec: TokenCodec,
        hasher: PasswordHasher,
        settings: Settings,
    ):
        self.profiles = profiles
        self.codec = codec
        self.hasher = hasher
        self.settings = settings

    async def register(self, data: RegistrationData) -> SessionResult:
        """
        Create an account and sign it in.

        Raises:
            ValidationError: email, password, first or last name missing
            ConflictError: email already registered
        """
        email = data.email.strip()
        missing = [
            name for name, value in (
                ("email", email),
                ("password", data.password),
                ("first_name", data.first_name),
                ("last_name", data.last_name),
            )
            if not value or not value.strip()
        ]
        if missing:
            raise ValidationError(missing_fields=missing)
        validate_password(data.password)

        if await self.profiles.get_by_email(email) is not None:
            raise ConflictError(
                f"Registration for existing email {email}",
                public_message="User already exists",
            )

        # Unknown roles fall back to a regular account
        role = parse_role(data.role) or UserRole.REGULAR_USER
        profile = Profile(
            email=email,
            password_hash=await self.hasher.hash_async(data.password),
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip(),
            phone=data.phone,
            address=data.address,
            role=role,
            kyc_type=kyc_type_for(role),
            can_upload_reports=is_professional(role),
            vkyc_completed=False,
        )

        try:
            await self.profiles.create(profile)
        except DuplicateKeyError:
            # Lost a race with a concurrent registration
            raise ConflictError(
                f"Concurrent registration for {email}",
                public_message="User already exists",
            )

        logger.info(f"Registered {profile.id} as {role.value}")
        return self._start_session(profile)

    async def login(self, email: str, password: str) -> SessionResult:
        """
        Authenticate and issue a fresh token.

        Every failure raises the same InvalidCredentialsError so callers
        cannot tell an unknown email from a wrong password.
        """
        if not email or not password:
            raise ValidationError("Email and password are required")

        profile = await self.profiles.get_by_email(email.strip())

        if profile is None or not profile.password_hash:
            await self.hasher.burn_async(password)
            logger.info("Login rejected: no password login for this account")
            raise InvalidCredentialsError()

        if not await self.hasher.verify_async(password, profile.password_hash):
            logger.info(f"Login rejected for {profile.id}: password mismatch")
            raise InvalidCredentialsError()

        return self._start_session(profile)

    def logout(self) -> CookieDirective:
        """
        Tell the client to drop its cookie.

        Nothing changes server-side; the token itself stays valid until
        it expires.
        """
        return CookieDirective.clear(self.settings)

    async def resolve_session(self, token: str | None) -> SessionDescriptor | None:
        """
        Turn a token into a session built from the principal's current data.

        Returns None if the token fails verification or the principal is gone.
        """
        if not token:
            return None

        try:
            claims = self.codec.verify(token)
        except TokenExpiredError:
            logger.info("Session token expired")
            return None
        except TokenInvalidError as e:
            logger.info(f"Session token rejected: {e.detail}")
            return None

        profile = await self.profiles.get(claims.user_id)
        if profile is None:
            logger.info(f"Session token for missing principal {claims.user_id}")
            return None

        return SessionDescriptor.from_profile(profile)

    def _start_session(self, profile: Profile) -> SessionResult:
        token = self.codec.issue(profile.id, profile.email)
        return SessionResult(
            session=SessionDescriptor.from_profile(profile),
            token=token,
            cookie=CookieDirective.issue(token, self.settings),
        )
