"""
Security utilities for trip access keys.
"""
import hashlib
import secrets
import string
import bcrypt
from familysplit.core.config import settings

_BASE36_ALPHABET = string.digits + string.ascii_lowercase


def _pre_hash_key(access_key: str) -> bytes:
    """
    Pre-hash the access key with SHA256 so bcrypt never sees more than 72 bytes.
    """
    return hashlib.sha256(access_key.encode('utf-8')).digest()


def generate_access_key(length: int = None) -> str:
    """Generate a random base36 access key shared by everyone on a trip."""
    length = length or settings.ACCESS_KEY_LENGTH
    return "".join(secrets.choice(_BASE36_ALPHABET) for _ in range(length))


def get_access_key_hash(access_key: str) -> str:
    """Hash an access key for storage."""
    pre_hashed = _pre_hash_key(access_key)
    hashed = bcrypt.hashpw(pre_hashed, bcrypt.gensalt())
    # Return as string for database storage
    return hashed.decode('utf-8')


def verify_access_key(plain_key: str, hashed_key: str) -> bool:
    """Verify an access key against its stored hash."""
    if not plain_key or not hashed_key:
        return False
    return bcrypt.checkpw(_pre_hash_key(plain_key), hashed_key.encode('utf-8'))
