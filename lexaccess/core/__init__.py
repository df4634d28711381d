"""
Core domain layer: models, roles, errors, utilities.
"""

from lexaccess.core.roles import (
    KycType,
    UserRole,
    is_professional,
    kyc_type_for,
    parse_role,
)
from lexaccess.core.errors import (
    ConfigurationError,
    ConflictError,
    InvalidCredentialsError,
    LexAccessError,
    NotFoundError,
    TokenError,
    TokenExpiredError,
    TokenInvalidError,
    ValidationError,
)
from lexaccess.core.models import (
    AccessGrant,
    AccessKind,
    AccessResult,
    GrantResult,
    Profile,
    ProfileResponse,
    VerificationDocument,
)
from lexaccess.core.utils import generate_id, utc_now

__all__ = [
    # Roles
    "KycType",
    "UserRole",
    "is_professional",
    "kyc_type_for",
    "parse_role",
    # Errors
    "ConfigurationError",
    "ConflictError",
    "InvalidCredentialsError",
    "LexAccessError",
    "NotFoundError",
    "TokenError",
    "TokenExpiredError",
    "TokenInvalidError",
    "ValidationError",
    # Models
    "AccessGrant",
    "AccessKind",
    "AccessResult",
    "GrantResult",
    "Profile",
    "ProfileResponse",
    "VerificationDocument",
    # Utils
    "generate_id",
    "utc_now",
]
