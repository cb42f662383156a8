"""One-way hashing of raw identity tokens (network addresses) for view dedup."""

import hashlib


def hash_identity(value: str) -> str:
    """Return the SHA-256 hex digest of ``value``.

    The digest is only ever compared for equality; it is never reversed.
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()
