"""Password hashing for tenant-local users.

Uses bcrypt with a per-hash random salt. bcrypt only accepts secrets of
up to ``BCRYPT_MAX_PASSWORD_BYTES`` bytes; longer input is rejected here
rather than silently truncated.
"""

from __future__ import annotations

import bcrypt

BCRYPT_MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a plaintext password using bcrypt.

    Args:
        password: The plaintext password

    Returns:
        The bcrypt hash as a string

    Raises:
        ValueError: If the UTF-8 encoded password exceeds 72 bytes
    """
    secret = password.encode()
    if len(secret) > BCRYPT_MAX_PASSWORD_BYTES:
        raise ValueError(
            f"password cannot be longer than {BCRYPT_MAX_PASSWORD_BYTES} bytes"
        )
    return bcrypt.hashpw(secret, bcrypt.gensalt()).decode()
