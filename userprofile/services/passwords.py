"""Salted password hashes."""

import hashlib
import hmac
import secrets
from base64 import b64encode, b64decode

from .exceptions import AuthenticationFailed

ALGORITHM = 'sha256'
ITERATIONS = 260000
SALT_BYTES = 16


def _hash_salt_and_password(salt: bytes, password: str,
                            iterations: int = ITERATIONS) -> bytes:
    return hashlib.pbkdf2_hmac(ALGORITHM, password.encode('utf-8'), salt,
                               iterations)


def hash_password(password: str) -> str:
    """
    Generate a secure hash of a password.

    The result is ``<iterations>$<base64(salt + hash)>``.
    """
    salt = secrets.token_bytes(SALT_BYTES)
    hashed = _hash_salt_and_password(salt, password)
    return f'{ITERATIONS}${b64encode(salt + hashed).decode("ascii")}'


def check_password(password: str, encrypted: str) -> bool:
    """Check a password against an encrypted hash."""
    try:
        iterations, encoded = encrypted.split('$', 1)
        decoded = b64decode(encoded)
        rounds = int(iterations)
    except (ValueError, TypeError) as e:
        raise AuthenticationFailed('Stored password is malformed') from e
    salt, enc_hashed = decoded[:SALT_BYTES], decoded[SALT_BYTES:]
    pass_hashed = _hash_salt_and_password(salt, password, rounds)
    if not hmac.compare_digest(pass_hashed, enc_hashed):
        raise AuthenticationFailed('Incorrect password')
    return True
