"""
Content checksums for optimistic concurrency.

A checksum is handed out with every read and must be presented with every
edit. If the file changed in between, the edit is rejected.
"""

import hashlib
from typing import Optional, Union

from mountfs.filesystem.exceptions import ConcurrencyError

CHECKSUM_LENGTH = 12


def checksum(content: Union[str, bytes]) -> str:
    """Return the first 12 hex characters of the SHA-256 of ``content``."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()[:CHECKSUM_LENGTH]


def verify_checksum(content: Union[str, bytes], expected: str) -> bool:
    return checksum(content) == expected.strip().lower()


def require_checksum(
    content: Union[str, bytes], expected: str, path: Optional[str] = None
) -> str:
    """
    Verify ``content`` against ``expected`` and return the actual checksum.

    Raises:
        ConcurrencyError: If the checksums differ.
    """
    actual = checksum(content)
    if actual != expected.strip().lower():
        raise ConcurrencyError(path, expected, actual)
    return actual
