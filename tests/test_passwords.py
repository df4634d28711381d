"""
Tests for password hashing.
"""

import pytest

from lexaccess.auth.passwords import PasswordHasher, validate_password
from lexaccess.core.errors import ValidationError


class TestPasswordHasher:
    def test_hash_and_verify(self, hasher):
        hashed = hasher.hash("correct-horse")

        assert hashed != "correct-horse"
        assert hasher.verify("correct-horse", hashed)
        assert not hasher.verify("wrong-horse", hashed)

    def test_salted(self, hasher):
        assert hasher.hash("correct-horse") != hasher.hash("correct-horse")

    def test_cost_factor(self):
        hashed = PasswordHasher(rounds=5).hash("correct-horse")
        assert hashed.startswith("$2b$05$")

    def test_default_cost_is_twelve(self):
        assert PasswordHasher().rounds == 12

    def test_missing_hash_never_matches(self, hasher):
        assert not hasher.verify("correct-horse", None)
        assert not hasher.verify("correct-horse", "")

    def test_malformed_hash_never_matches(self, hasher):
        assert not hasher.verify("correct-horse", "not-a-bcrypt-hash")

    def test_burn_accepts_any_password(self, hasher):
        hasher.burn("x" * 200)

    async def test_async_variants(self, hasher):
        hashed = await hasher.hash_async("correct-horse")
        assert await hasher.verify_async("correct-horse", hashed)
        assert not await hasher.verify_async("wrong-horse", hashed)


class TestValidatePassword:
    def test_accepts_reasonable_password(self):
        validate_password("correct-horse")

    @pytest.mark.parametrize("password", ["", "short", "x" * 73, "é" * 37])
    def test_rejects(self, password):
        with pytest.raises(ValidationError):
            validate_password(password)
