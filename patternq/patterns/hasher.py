"""Content fingerprint for uploaded images (dedup key)."""

from __future__ import annotations

from hashlib import sha256


def content_hash(data: bytes) -> str:
    """
    Return the lowercase hex SHA-256 digest of raw image bytes.

    Empty input is valid and hashes to the fixed empty-input digest.
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError(f"content_hash expects bytes, got {type(data).__name__}")
    return sha256(bytes(data)).hexdigest()
