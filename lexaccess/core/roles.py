"""
Roles and KYC types.

A principal's role decides which verification track they follow and
whether they may publish reports.
"""

from enum import Enum


class UserRole(str, Enum):
    """Platform-wide role of a principal."""

    REGULAR_USER = "REGULAR_USER"                  # Client seeking legal help
    BARRISTER = "BARRISTER"
    LAWYER = "LAWYER"
    GOVERNMENT_OFFICIAL = "GOVERNMENT_OFFICIAL"


class KycType(str, Enum):
    """Which identity-verification track a principal follows."""

    REGULAR = "REGULAR"
    PROFESSIONAL = "PROFESSIONAL"


PROFESSIONAL_ROLES: frozenset[UserRole] = frozenset({
    UserRole.BARRISTER,
    UserRole.LAWYER,
    UserRole.GOVERNMENT_OFFICIAL,
})

# Lower-case spellings accepted from forms
ROLE_ALIASES: dict[str, UserRole] = {
    "user": UserRole.REGULAR_USER,
    "regular_user": UserRole.REGULAR_USER,
    "barrister": UserRole.BARRISTER,
    "lawyer": UserRole.LAWYER,
    "government_official": UserRole.GOVERNMENT_OFFICIAL,
}


def parse_role(value: str | None) -> UserRole | None:
    """
    Normalise a role string to a UserRole.

    Accepts enum values ("LAWYER") and lower-case aliases ("lawyer").
    Returns None for anything unrecognised.
    """
    if not value:
        return None
    alias = ROLE_ALIASES.get(value.lower())
    if alias:
        return alias
    try:
        return UserRole(value)
    except ValueError:
        return None


def is_professional(role: UserRole) -> bool:
    return role in PROFESSIONAL_ROLES


def kyc_type_for(role: UserRole) -> KycType:
    """Professional roles verify as PROFESSIONAL, everyone else as REGULAR."""
    return KycType.PROFESSIONAL if is_professional(role) else KycType.REGULAR
