"""Content hashing and remote ETag interpretation.

Local content is identified by its SHA-512 digest. The remote announces the
digest of what it stores through the ``ETag`` header in one of three shapes:

* strict: ``"<128 hex>"``
* weak: ``W/"<128 hex>"`` (the weakness is irrelevant here)
* complex: an opaque memory-document key, whose integrity cannot be checked
"""

import hashlib
import re
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from ..exceptions import EtagFormatError

STRICT_ETAG_PATTERN = re.compile(r'^"[a-fA-F0-9]{128}"$')
WEAK_ETAG_PATTERN = re.compile(r'^W/"[a-fA-F0-9]{128}"$')
COMPLEX_ETAG_PATTERN = re.compile(
    r'^"?\d{10,13}-\{.*?"class":\s*"myassn\.document\.(Proxy|LibraryServlet)'
    r'MemoryDocumentKey".*?"classId":\s*\d+.*?\}"?$'
)

HASH_LENGTH = 128


class EtagKind(str, Enum):
    """Recognized ETag shapes."""

    STRICT = "strict"
    WEAK = "weak"
    COMPLEX = "complex"


class _Unknown:
    """Sentinel for a remote hash that cannot be known."""

    _instance = None

    def __new__(cls) -> "_Unknown":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNKNOWN"

    def __bool__(self) -> bool:
        return False


UNKNOWN = _Unknown()
"""Returned by :func:`remote_hash` for complex ETags."""

RemoteHash = Union[str, _Unknown]


def local_hash(data: bytes) -> str:
    """SHA-512 of the given bytes as 128 lowercase hex characters."""
    return hashlib.sha512(data).hexdigest()


def hash_file(path: Path, chunk_size: int = 1024 * 1024) -> str:
    """SHA-512 of a file's content."""
    digest = hashlib.sha512()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def classify_etag(etag: Optional[str]) -> EtagKind:
    """Determine which of the accepted shapes an ETag header has.

    Raises:
        EtagFormatError: If the header is missing or matches no shape
    """
    value = (etag or "").strip()
    if STRICT_ETAG_PATTERN.match(value):
        return EtagKind.STRICT
    if WEAK_ETAG_PATTERN.match(value):
        return EtagKind.WEAK
    if COMPLEX_ETAG_PATTERN.match(value):
        return EtagKind.COMPLEX
    raise EtagFormatError(etag)


def remote_hash(etag: Optional[str]) -> RemoteHash:
    """Extract the hash announced by an ETag header.

    Args:
        etag: Raw ``ETag`` header value

    Returns:
        Lowercase hex hash for strict and weak ETags, :data:`UNKNOWN` for
        complex ones

    Raises:
        EtagFormatError: If the header matches no accepted shape

    Examples:
        >>> remote_hash('W/"' + "A" * 128 + '"') == "a" * 128
        True
    """
    kind = classify_etag(etag)
    value = (etag or "").strip()
    if kind == EtagKind.COMPLEX:
        return UNKNOWN
    if kind == EtagKind.WEAK:
        value = value[2:]
    return value.strip('"').lower()


def hashes_match(local: Optional[str], remote: Optional[RemoteHash]) -> bool:
    """True only when both hashes are concrete and equal.

    :data:`UNKNOWN` never matches; callers must treat it as "skip the check"
    rather than as a mismatch.
    """
    if not isinstance(local, str) or not isinstance(remote, str):
        return False
    if not local or not remote:
        return False
    return local.lower() == remote.lower()
