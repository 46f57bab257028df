"""Password hashing with bcrypt.

bcrypt only looks at the first 72 bytes of its input; longer passwords are
truncated explicitly so hashing and verification always agree.
"""

import logging

import bcrypt

logger = logging.getLogger(__name__)

_BCRYPT_MAX_BYTES = 72


def _encode(plaintext: str) -> bytes:
    return plaintext.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plaintext: str, rounds: int = 12) -> str:
    """Hash password with a fresh salt at the given cost factor."""
    hashed = bcrypt.hashpw(_encode(plaintext), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(plaintext: str, password_hash: str) -> bool:
    """
    Check plaintext against a stored hash.

    Comparison is done by bcrypt.checkpw. A malformed stored hash is
    reported as a mismatch, not an error.
    """
    try:
        return bcrypt.checkpw(_encode(plaintext), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False
