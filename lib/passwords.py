# =============================================================================
# lib/passwords.py - Password Hashing
# =============================================================================
# Argon2id hashing for customer passwords. Plain passwords never reach the
# record store.
# =============================================================================

from __future__ import annotations

from argon2 import PasswordHasher as Argon2Hasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError


class PasswordHasher:
    """Argon2id password hasher with library defaults."""

    def __init__(self) -> None:
        self._hasher = Argon2Hasher()

    def hash(self, password: str) -> str:
        return self._hasher.hash(password)

    def verify(self, hashed: str | None, password: str) -> bool:
        if not hashed:
            return False
        try:
            return self._hasher.verify(hashed, password)
        except (VerifyMismatchError, InvalidHashError, VerificationError):
            return False
