"""
Identity verification (VKYC) state.

Verification state is never stored on its own. It is derived from the
profile's required fields plus the persisted `vkyc_completed` flag.
"""

from __future__ import annotations

import logging
from datetime import datetime

from pydantic import BaseModel

from lexaccess.core.roles import kyc_type_for
from lexaccess.core.errors import NotFoundError, ValidationError
from lexaccess.core.models import Profile, VerificationDocument, normalize_profile_fields
from lexaccess.core.utils import utc_now
from lexaccess.storage.base import ProfileRepository

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("first_name", "last_name", "phone")

# Fields the verification form may fill in on the way
VERIFICATION_PROFILE_FIELDS = {"first_name", "last_name", "phone", "address"}


class VerificationState(BaseModel):
    """Where a principal stands with identity verification."""

    user_id: str
    email: str
    vkyc_completed: bool
    vkyc_completed_at: datetime | None
    has_required_fields: bool
    missing_fields: list[str]
    requires_verification: bool
    can_complete: bool
    documents_count: int = 0
    message: str


class DocumentInput(BaseModel):
    """A captured document as posted by the verification form."""

    type: str | None = None
    document_type: str | None = None
    url: str | None = None
    document_url: str | None = None


def evaluate_verification(profile: Profile, documents_count: int = 0) -> VerificationState:
    """Derive verification state from the profile as it is right now."""
    missing = [
        field for field in REQUIRED_FIELDS
        if not (getattr(profile, field) or "").strip()
    ]

    if profile.vkyc_completed:
        message = "VKYC verification completed."
    elif missing:
        message = f"Please complete your profile ({', '.join(missing)}) before VKYC verification."
    else:
        message = "VKYC verification is required to access all features."

    return VerificationState(
        user_id=profile.id,
        email=profile.email,
        vkyc_completed=profile.vkyc_completed,
        vkyc_completed_at=profile.vkyc_completed_at,
        has_required_fields=not missing,
        missing_fields=missing,
        requires_verification=not profile.vkyc_completed or bool(missing),
        can_complete=not missing,
        documents_count=documents_count,
        message=message,
    )


class VerificationService:
    """Reads and completes verification for a principal."""

    def __init__(self, profiles: ProfileRepository):
        self.profiles = profiles

    async def status(self, user_id: str) -> VerificationState:
        profile = await self._get_profile(user_id)
        documents = await self.profiles.list_documents(user_id)
        return evaluate_verification(profile, len(documents))

    async def complete(
        self,
        user_id: str,
        profile_data: dict | None = None,
        documents: list[DocumentInput] | None = None,
    ) -> VerificationState:
        """
        Mark verification complete.

        Any profile fields sent along are applied first. Refuses with
        ValidationError while required fields are still missing.
        """
        profile = await self._get_profile(user_id)
        updates = normalize_profile_fields(profile_data or {}, VERIFICATION_PROFILE_FIELDS)

        pending = evaluate_verification(profile.model_copy(update=updates))
        if not pending.can_complete:
            raise ValidationError(pending.message, missing_fields=pending.missing_fields)

        kyc_type = kyc_type_for(profile.role)
        updated = await self.profiles.update(user_id, {
            **updates,
            "vkyc_completed": True,
            "vkyc_completed_at": utc_now(),
            "kyc_type": kyc_type,
        })
        if updated is None:
            raise NotFoundError("Profile not found")

        if documents:
            await self.profiles.replace_documents(user_id, [
                VerificationDocument(
                    user_id=user_id,
                    document_type=doc.type or doc.document_type or "unknown",
                    document_url=doc.url or doc.document_url or "",
                    kyc_type=kyc_type,
                )
                for doc in documents
            ])

        logger.info(f"Verification completed for {user_id} ({kyc_type.value})")
        return await self.status(user_id)

    async def _get_profile(self, user_id: str) -> Profile:
        profile = await self.profiles.get(user_id)
        if profile is None:
            raise NotFoundError("Profile not found")
        return profile
