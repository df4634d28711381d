"""
Core data models for lexaccess.

These models represent the fundamental entities: Profiles (principals),
verification documents, and access grants. Storage backends convert their
rows into these models; services never see ORM objects.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lexaccess.core.roles import KycType, UserRole, is_professional
from lexaccess.core.utils import as_utc, generate_id, utc_now


# =============================================================================
# Enums
# =============================================================================


class AccessKind(str, Enum):
    """Which consultation channels a grant opens."""

    VIDEO = "video"
    CHAT = "chat"
    BOTH = "both"


# =============================================================================
# Profile (the principal)
# =============================================================================


class Profile(BaseModel):
    """
    A registered principal.

    `password_hash` is None for externally-provisioned accounts; such
    accounts can never log in with a password.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=lambda: generate_id("user"))
    email: str
    password_hash: str | None = None

    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    address: str | None = None

    role: UserRole = UserRole.REGULAR_USER
    kyc_type: KycType = KycType.REGULAR
    can_upload_reports: bool = False

    vkyc_completed: bool = False
    vkyc_completed_at: datetime | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("vkyc_completed_at", "created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def is_professional(self) -> bool:
        return is_professional(self.role)


class ProfileResponse(BaseModel):
    """Profile data returned to clients (no password hash)."""

    id: str
    email: str
    first_name: str | None
    last_name: str | None
    phone: str | None
    address: str | None
    role: UserRole
    kyc_type: KycType
    can_upload_reports: bool
    vkyc_completed: bool
    vkyc_completed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_profile(cls, profile: Profile) -> ProfileResponse:
        return cls.model_validate(profile.model_dump(exclude={"password_hash"}))


class VerificationDocument(BaseModel):
    """An identity document captured during verification."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=lambda: generate_id("doc"))
    user_id: str
    document_type: str
    document_url: str
    kyc_type: KycType
    created_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# Access Grant
# =============================================================================


class AccessGrant(BaseModel):
    """
    A paid, time-boxed permission for one client on one consultation.

    The record outlives its window: expiry is evaluated at read time.
    """

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str = Field(default_factory=lambda: generate_id("access"))
    consultation_id: str = Field(serialization_alias="consultationId")
    client_id: str = Field(serialization_alias="clientId")
    advocate_id: str = Field(serialization_alias="advocateId")
    access_kind: AccessKind = Field(serialization_alias="accessType")
    granted_at: datetime = Field(serialization_alias="grantedAt")
    expires_at: datetime = Field(serialization_alias="expiresAt")
    payment_id: str = Field(serialization_alias="paymentId")
    is_active: bool = Field(default=True, serialization_alias="isActive")

    @field_validator("granted_at", "expires_at")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    def is_live(self, now: datetime) -> bool:
        """Active and not yet expired at `now`."""
        return self.is_active and now < self.expires_at

    def remaining_ms(self, now: datetime) -> int:
        return max(0, int((self.expires_at - now).total_seconds() * 1000))


class GrantResult(BaseModel):
    """Outcome of a grant request."""

    grant: AccessGrant
    already_granted: bool = False

    @property
    def message(self) -> str:
        if self.already_granted:
            return "Access already granted"
        return "Access granted"


class AccessResult(BaseModel):
    """Outcome of an access check."""

    has_access: bool
    grant: AccessGrant | None = None
    time_remaining_ms: int | None = None

    def to_response(self) -> dict:
        body: dict = {"hasAccess": self.has_access}
        if self.grant is not None:
            body["grant"] = self.grant.model_dump(mode="json", by_alias=True)
            body["timeRemainingMs"] = self.time_remaining_ms
        return body


# =============================================================================
# Profile field input
# =============================================================================


# Forms send camelCase; storage uses snake_case
PROFILE_FIELD_ALIASES: dict[str, str] = {
    "firstName": "first_name",
    "lastName": "last_name",
}


def normalize_profile_fields(data: dict, allowed: set[str]) -> dict:
    """
    Map incoming keys to column names and drop anything not in `allowed`.

    Usage:
        normalize_profile_fields({"firstName": "Ada", "id": "x"}, {"first_name"})
        # -> {"first_name": "Ada"}
    """
    mapped = {}
    for key, value in data.items():
        column = PROFILE_FIELD_ALIASES.get(key, key)
        if column in allowed:
            mapped[column] = value
    return mapped
