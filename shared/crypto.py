"""
Hashing helpers for one-time verification codes.

Codes are hashed with argon2id (via argon2-cffi) so a pending challenge never
holds the plaintext and a leaked record cannot be matched against the small
6-digit code space with a plain digest lookup.
"""

from __future__ import annotations

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

_code_hasher = PasswordHasher()


def hash_code(plain_code: str) -> str:
    """Hash *plain_code* with argon2id.

    Returns:
        Argon2 hash string (includes algorithm parameters and salt).
    """
    return _code_hasher.hash(plain_code)


def verify_code(plain_code: str, code_hash: str) -> bool:
    """Verify *plain_code* against an argon2 *code_hash*.

    Returns:
        ``True`` if the code matches, ``False`` for a mismatch or a malformed
        hash.
    """
    try:
        return _code_hasher.verify(code_hash, plain_code)
    except (VerificationError, InvalidHashError):
        return False
