"""Session handle shared by every script root in one run.

A :class:`Session` bundles the HTTP client and the organization-to-host
cache. It is passed explicitly to roots, nodes and engines instead of
living in a module global.
"""

import logging
from typing import Optional

from .api import ScriptClient
from .config import Config, config
from .exceptions import ConfigLookupError

logger = logging.getLogger(__name__)


class OrgCache:
    """Maps organization ids (``U1001``) to the host serving them."""

    def __init__(self, origins: Optional[dict[str, str]] = None):
        self._origins: dict[str, str] = dict(origins or {})

    def set(self, organization_id: str, host: str) -> None:
        """Remember the host for an organization."""
        self._origins[organization_id] = host

    def get(self, organization_id: str) -> str:
        """Get the host for an organization.

        Raises:
            ConfigLookupError: If the organization is unknown
        """
        host = self._origins.get(organization_id)
        if not host:
            raise ConfigLookupError(f"origin for organization {organization_id}")
        return host

    def __contains__(self, organization_id: object) -> bool:
        return organization_id in self._origins


class Session:
    """Long-lived context for sync operations."""

    def __init__(
        self,
        client: Optional[ScriptClient] = None,
        org_cache: Optional[OrgCache] = None,
        settings: Optional[Config] = None,
    ):
        """Initialize a session.

        Args:
            client: HTTP client (a default one is created if not provided)
            org_cache: Organization host cache (filled from config if not provided)
            settings: Configuration source (module-level config if not provided)
        """
        self.config = settings or config
        self.client = client or ScriptClient()
        self.org_cache = org_cache or OrgCache(self.config.origins)

    def origin_for(self, organization_id: str) -> str:
        return self.org_cache.get(organization_id)

    def close(self) -> None:
        self.client.close()
        logger.debug("Session closed")
