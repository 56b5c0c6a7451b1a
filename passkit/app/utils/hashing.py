"""
Content digests for bundle members.

This module hashes bytes, and bytes only. Serialization of documents
and of the manifest itself happens elsewhere.

The manifest digest is SHA-1: it is an integrity map consumed by the
detached signature, which carries the actual trust guarantee.
"""

import hashlib
from typing import Union


def compute_file_digest(data: Union[bytes, bytearray]) -> str:
    """
    Compute the manifest digest of a bundle member.

    Returns:
        Lowercase hex SHA-1, 40 characters.
    """
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError(
            "compute_file_digest expects bytes, "
            f"got {type(data).__name__}"
        )

    return hashlib.sha1(data).hexdigest()


def compute_digest(data: Union[bytes, bytearray], algorithm: str) -> bytes:
    """Raw digest of ``data`` under a named hashlib algorithm."""
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError(
            "compute_digest expects bytes, "
            f"got {type(data).__name__}"
        )

    return hashlib.new(algorithm, data).digest()
