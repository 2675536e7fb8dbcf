"""Utility constants and helpers for pyb6p."""

from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Optional

# =============================================================================
# Script layout
# =============================================================================

METADATA_FILENAME = ".b6p_metadata.json"
GITIGNORE_FILENAME = ".gitignore"

DRAFT_FOLDER = "draft"
DECLARATIONS_FOLDER = "declarations"
SNAPSHOT_FOLDER = "snapshot"
INFO_FOLDER = "info"
OBJECTS_FOLDER = "objects"
SCRIPTS_FOLDER = "scripts"
BUILD_FOLDER = ".build"

INFO_FILES = ("metadata.json", "permissions.json", "config.json")
CONFIG_JSON = "config.json"
IMPORTS_FILE = "imports.ts"
TSCONFIG_FILE = "tsconfig.json"

DS_STORE_PATTERN = "**/.DS_Store"

# =============================================================================
# HTTP
# =============================================================================

CONTENT_TYPE_JSON = "application/json"
ACCEPT_ALL = "*/*"

# Returned in place of a real response when a transfer does not apply
NOT_APPLICABLE_STATUS = 418


# =============================================================================
# Timestamp utilities
# =============================================================================


def http_date(when: Optional[datetime] = None) -> str:
    """Format a timestamp the way the ledger stores it (RFC 1123, GMT).

    Args:
        when: Timestamp to format (defaults to now)

    Returns:
        String such as ``"Wed, 15 Jan 2025 10:30:00 GMT"``
    """
    if when is None:
        when = datetime.now(timezone.utc)
    elif when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return format_datetime(when.astimezone(timezone.utc), usegmt=True)


def parse_http_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 1123 date (``Last-Modified``, ledger timestamps).

    Returns:
        Timezone-aware datetime, or None if the value is empty or invalid
    """
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
