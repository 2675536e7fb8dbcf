"""Configuration management for pyb6p.

Settings come from environment variables. Persisting settings is left to
the host; this module only reads them.
"""

import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: float = 30.0
DEFAULT_MAX_WORKERS: int = 4
DEFAULT_TSC: str = "tsc"


def parse_origins(raw: Optional[str]) -> dict[str, str]:
    """Parse an ``U1001=host.example.com,U1002=other.example.com`` mapping.

    Args:
        raw: Comma-separated ``organization=host`` pairs

    Returns:
        Mapping of organization id to host name

    Examples:
        >>> parse_origins("U1001=a.example.com, U7=b.example.com")
        {'U1001': 'a.example.com', 'U7': 'b.example.com'}
    """
    origins: dict[str, str] = {}
    if not raw:
        return origins
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        if "=" not in pair:
            logger.warning("Ignoring malformed origin entry: %s", pair)
            continue
        org, host = pair.split("=", 1)
        origins[org.strip()] = host.strip()
    return origins


class Config:
    """Environment-backed settings."""

    @property
    def origins(self) -> dict[str, str]:
        """Known hosts keyed by organization id (``B6P_ORIGINS``)."""
        return parse_origins(os.environ.get("B6P_ORIGINS"))

    @property
    def username(self) -> Optional[str]:
        return os.environ.get("B6P_USERNAME")

    @property
    def password(self) -> Optional[str]:
        return os.environ.get("B6P_PASSWORD")

    @property
    def timeout(self) -> float:
        return self._float("B6P_TIMEOUT", DEFAULT_TIMEOUT)

    @property
    def max_workers(self) -> int:
        value = self._float("B6P_MAX_WORKERS", DEFAULT_MAX_WORKERS)
        return max(1, int(value))

    @property
    def tsc(self) -> str:
        """Compiler executable used by the build step (``B6P_TSC``)."""
        return os.environ.get("B6P_TSC", DEFAULT_TSC)

    @staticmethod
    def _float(name: str, default: float) -> float:
        raw = os.environ.get(name)
        if raw is None or not raw.strip():
            return default
        try:
            return float(raw)
        except ValueError:
            logger.warning("Invalid value for %s: %r, using %s", name, raw, default)
            return default


config = Config()
