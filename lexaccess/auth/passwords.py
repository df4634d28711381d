"""
Password hashing.

bcrypt with a cost factor of 12 by default. The plaintext is never logged
or echoed anywhere in this module.
"""

from __future__ import annotations

import bcrypt
from starlette.concurrency import run_in_threadpool

from lexaccess.core.errors import ValidationError

# bcrypt only looks at the first 72 bytes; longer input is rejected outright
MAX_PASSWORD_BYTES = 72
MIN_PASSWORD_LENGTH = 8


def validate_password(password: str) -> None:
    """Raise ValidationError if a new password is unusable."""
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


class PasswordHasher:
    """Salted, adaptive password hashing."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds
        self._dummy_hash: bytes | None = None

    def hash(self, password: str) -> str:
        """Hash a password. Returns the bcrypt modular-crypt string."""
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("ascii")

    def verify(self, password: str, password_hash: str | None) -> bool:
        """Verify a password against its hash. Malformed hashes never match."""
        if not password_hash:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("ascii"))
        except (ValueError, TypeError, UnicodeEncodeError):
            return False

    def burn(self, password: str) -> None:
        """
        Spend the cost of one verification without a real hash.

        Used when the account is unknown so the response takes as long as a
        wrong-password response.
        """
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(b"lexaccess-placeholder", bcrypt.gensalt(rounds=self.rounds))
        bcrypt.checkpw(password.encode("utf-8")[:MAX_PASSWORD_BYTES], self._dummy_hash)

    # Async variants: bcrypt blocks, so keep it off the event loop

    async def hash_async(self, password: str) -> str:
        return await run_in_threadpool(self.hash, password)

    async def verify_async(self, password: str, password_hash: str | None) -> bool:
        return await run_in_threadpool(self.verify, password, password_hash)

    async def burn_async(self, password: str) -> None:
        await run_in_threadpool(self.burn, password)
