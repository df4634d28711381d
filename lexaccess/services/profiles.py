"""
Profile reads and updates.

Changing who someone is (name, phone, address, role) invalidates their
identity verification: the flag is cleared and captured documents are
dropped, so they go through VKYC again.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel

from lexaccess.auth.passwords import PasswordHasher, validate_password
from lexaccess.core.roles import is_professional, kyc_type_for, parse_role
from lexaccess.core.errors import ConflictError, NotFoundError, ValidationError
from lexaccess.core.models import Profile, normalize_profile_fields
from lexaccess.storage.base import DuplicateKeyError, ProfileRepository

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"first_name", "last_name", "email", "phone", "address", "role", "password"}
SIGNIFICANT_FIELDS = ("first_name", "last_name", "phone", "address", "role")


class ProfileUpdateResult(BaseModel):
    profile: Profile
    vkyc_reset: bool

    @property
    def message(self) -> str:
        if self.vkyc_reset:
            return "Profile updated successfully. VKYC verification is required due to significant changes."
        return "Profile updated successfully."


class ProfileService:
    """Reads and edits principals."""

    def __init__(self, profiles: ProfileRepository, hasher: PasswordHasher):
        self.profiles = profiles
        self.hasher = hasher

    async def get(self, user_id: str) -> Profile:
        profile = await self.profiles.get(user_id)
        if profile is None:
            raise NotFoundError("Profile not found")
        return profile

    async def update(self, user_id: str, changes: dict[str, Any]) -> ProfileUpdateResult:
        """
        Apply a partial update.

        Keys may be camelCase (firstName) or snake_case (first_name);
        unknown keys are ignored.

        Raises:
            NotFoundError: no such profile
            ValidationError: unknown role, empty email, or unusable password
            ConflictError: email belongs to another account
        """
        updates = normalize_profile_fields(changes, UPDATABLE_FIELDS)

        if "role" in updates:
            role = parse_role(updates["role"])
            if role is None:
                raise ValidationError(f"Invalid role provided: {updates['role']}")
            updates["role"] = role

        if "email" in updates:
            email = (updates["email"] or "").strip()
            if not email:
                raise ValidationError(missing_fields=["email"])
            updates["email"] = email

        profile = await self.get(user_id)

        significant = any(
            field in updates and updates[field] != getattr(profile, field)
            for field in SIGNIFICANT_FIELDS
        )

        if "password" in updates:
            password = updates.pop("password")
            validate_password(password)
            updates["password_hash"] = await self.hasher.hash_async(password)

        if "role" in updates:
            updates["kyc_type"] = kyc_type_for(updates["role"])
            updates["can_upload_reports"] = is_professional(updates["role"])

        if significant:
            updates["vkyc_completed"] = False
            updates["vkyc_completed_at"] = None

        try:
            updated = await self.profiles.update(user_id, updates)
        except DuplicateKeyError:
            raise ConflictError(
                f"Email change for {user_id} collides with another account",
                public_message="Email already in use",
            )
        if updated is None:
            raise NotFoundError("Profile not found")

        if significant and profile.vkyc_completed:
            removed = await self.profiles.clear_documents(user_id)
            logger.info(f"Verification reset for {user_id}; cleared {removed} documents")

        return ProfileUpdateResult(profile=updated, vkyc_reset=significant)
