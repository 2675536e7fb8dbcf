"""pyb6p - synchronize script sources with a remote document store."""

from .api import ScriptClient
from .exceptions import (
    B6PError,
    CompilationError,
    ConfigLookupError,
    EtagFormatError,
    HttpStatusError,
    IntegrityMismatchError,
    LedgerCorruptionError,
    ListingError,
    MetadataFileOperationError,
    ModificationTimeError,
    NetworkError,
    PathFormatError,
    ScriptNotCopaceticError,
    TransientIOError,
    UnmappableZoneError,
)
from .session import OrgCache, Session

__version__ = "0.1.0"

__all__ = [
    "ScriptClient",
    "Session",
    "OrgCache",
    "B6PError",
    "CompilationError",
    "ConfigLookupError",
    "EtagFormatError",
    "HttpStatusError",
    "IntegrityMismatchError",
    "LedgerCorruptionError",
    "ListingError",
    "MetadataFileOperationError",
    "ModificationTimeError",
    "NetworkError",
    "PathFormatError",
    "ScriptNotCopaceticError",
    "TransientIOError",
    "UnmappableZoneError",
]
