"""Exceptions raised by pyb6p."""

from __future__ import annotations


class B6PError(Exception):
    """Base exception for all pyb6p errors."""


class PathFormatError(B6PError):
    """A local path does not follow the ``.../U<digits>/<script>/<zone>/...`` layout."""

    def __init__(self, path: str, expected: str = "organization segment (U<digits>)"):
        self.path = path
        super().__init__(
            f"Path does not conform to expected structure: {path}, expected {expected}"
        )


class LedgerCorruptionError(B6PError):
    """The ledger file is empty or holds malformed JSON.

    Only raised internally; the ledger store recovers by recreating defaults.
    """


class TransientIOError(B6PError):
    """Reading a file kept failing after all retry attempts."""


class EtagFormatError(B6PError):
    """The remote ETag header matches none of the accepted shapes."""

    def __init__(self, etag: str | None):
        self.etag = etag
        super().__init__(
            f"Could not parse remote etag `{etag}`, cannot verify integrity"
        )


class IntegrityMismatchError(B6PError):
    """Downloaded bytes do not match the hash announced by the remote ETag."""

    def __init__(self, path: str, expected: str, actual: str):
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Downloaded file hash does not match remote hash for {path}, "
            "disk corruption detected"
        )


class HttpStatusError(B6PError):
    """The remote answered with a non-2xx status."""

    def __init__(self, status_code: int, url: str, detail: str = ""):
        self.status_code = status_code
        self.url = url
        self.detail = detail
        message = f"Request to {url} failed with status {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class NetworkError(B6PError):
    """The request never produced a response (DNS, connection, timeout)."""


class ListingError(B6PError):
    """A directory listing from the remote could not be parsed."""

    def __init__(self, url: str, detail: str):
        self.url = url
        self.detail = detail
        super().__init__(f"Could not read the listing of {url}: {detail}")


class ConfigLookupError(B6PError):
    """A required configuration value or file was missing or ambiguous."""

    def __init__(self, name: str, count: int | None = None):
        self.name = name
        self.count = count
        if count is None:
            super().__init__(f"Could not resolve {name}")
        else:
            super().__init__(f"Could not find {name} file, found: {count}")


class MetadataFileOperationError(B6PError):
    """An operation was attempted on the ledger file itself."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Cannot {operation} metadata file")


class UnmappableZoneError(B6PError):
    """The node lives in a zone that has no remote counterpart."""

    def __init__(self, zone: str):
        self.zone = zone
        super().__init__(f"Unexpected zone `{zone}`, cannot convert to remote URL")


class ModificationTimeError(B6PError):
    """The remote did not report a ``Last-Modified`` header."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Could not determine last modified time of {url}")


class CompilationError(B6PError):
    """The external compiler could not be run."""


class ScriptNotCopaceticError(B6PError):
    """The script folder is missing files it is required to have."""

    def __init__(self, message: str = "Script is not in a copacetic state"):
        super().__init__(message)
