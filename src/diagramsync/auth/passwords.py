"""Salted password hashing with bcrypt."""

from __future__ import annotations

import bcrypt

# bcrypt only considers the first 72 bytes of a password
_BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: int = 10) -> str:
    """Hash a password with a fresh salt.

    Args:
        password: Plain-text password.
        rounds: bcrypt cost factor (log2 of the iteration count).

    Returns:
        The bcrypt hash, salt included, as text.
    """
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds)).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash.

    Malformed hashes verify as False.
    """
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("ascii"))
    except ValueError:
        return False
