"""
Password hashing utilities.

Argon2 hashing for operator and admin passwords.
"""

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

password_hasher = PasswordHasher(encoding="utf-8")


def get_password_hash(password: str) -> str:
    """
    Hash a plain-text password using Argon2.

    Args:
        password: The plain-text password

    Returns:
        The Argon2 hash of the password
    """
    return password_hasher.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    """
    Verify a plain-text password against a stored Argon2 hash.

    Returns:
        True if the password matches the hash, False otherwise
    """
    try:
        return password_hasher.verify(hashed_password, password)
    except (VerificationError, InvalidHashError):
        return False
