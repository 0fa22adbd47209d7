"""Utility functions for Invocursor.

This module provides shared helpers for key generation and password
hashing.
"""

import hashlib
import hmac
import secrets
import string


API_KEY_PREFIX = "inv_"
API_KEY_ALPHABET = string.ascii_lowercase + string.digits


def generate_api_key(length: int = 24) -> str:
    """Generates a new API key: ``inv_`` followed by ``length`` characters."""
    suffix = "".join(secrets.choice(API_KEY_ALPHABET) for _ in range(length))
    return API_KEY_PREFIX + suffix


def hash_password(password: str) -> str:
    """Simple SHA256 hashing of a password.

    In production, use a dedicated library like bcrypt or argon2.
    """
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def verify_password(candidate: str, password_hash: str) -> bool:
    """Compares a candidate against a stored hash in constant time."""
    return hmac.compare_digest(hash_password(candidate), password_hash)
