"""Push eligibility: the ordered chain of reasons not to push a node."""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ..api import ScriptClient
from ..exceptions import HttpStatusError
from ..utils import INFO_FOLDER, OBJECTS_FOLDER
from .integrity import UNKNOWN, hashes_match, remote_hash
from .location import Zone

if TYPE_CHECKING:
    from .nodes import ScriptNode
    from .root import ScriptRoot

logger = logging.getLogger(__name__)


class PushReason(str, Enum):
    """Reasons a node is not pushed, in the order they are checked."""

    ROOT = "is root folder"
    METADATA = "is a metadata file"
    DECLARATIONS = "is in declarations"
    EXTERNAL_MODEL = "is an external model"
    IGNORED = "is ignored"
    INFO_OR_OBJECTS = "is in info/objects"
    FOLDER = "is a folder"
    INTEGRITY_MATCHES = "integrity matches"


class SyncDecisionEngine:
    """Decides whether a node should be pushed.

    The checks run in a fixed order and stop at the first one that applies.
    An empty string means the node is eligible for upload.
    """

    def __init__(self, client: ScriptClient):
        self.client = client

    def reason_to_not_push(
        self,
        node: "ScriptNode",
        root: Optional["ScriptRoot"] = None,
        override_url: Optional[str] = None,
    ) -> str:
        """Get the first reason not to push a node.

        Args:
            node: File or folder to check
            root: Script root of the node (defaults to ``node.root``)
            override_url: Remote URL to compare against instead of the
                node's own one

        Returns:
            One of the :class:`PushReason` values, or ``""`` if pushable

        Raises:
            ConfigLookupError: If config.json cannot be read
            HttpStatusError: If the integrity HEAD fails with other than 404
            EtagFormatError: If the remote ETag is missing or unrecognized
        """
        root = root or node.root
        location = node.location

        if location.zone == Zone.ROOT:
            return PushReason.ROOT.value
        if location.is_ledger_file():
            return PushReason.METADATA.value
        if location.zone == Zone.DECLARATIONS:
            return PushReason.DECLARATIONS.value
        if node.name in root.external_models():
            return PushReason.EXTERNAL_MODEL.value
        if root.exclusions.matches(node.path, is_dir=node.is_folder):
            return PushReason.IGNORED.value
        if self.is_in_info_or_objects(node):
            return PushReason.INFO_OR_OBJECTS.value
        if node.is_folder:
            return PushReason.FOLDER.value
        if self.integrity_matches(node, override_url):
            return PushReason.INTEGRITY_MATCHES.value
        return ""

    @staticmethod
    def is_in_info_or_objects(node: "ScriptNode") -> bool:
        location = node.location
        if location.zone != Zone.DRAFT:
            return False
        parts = location.relative_path.split("/")
        return len(parts) > 1 and parts[0] in (INFO_FOLDER, OBJECTS_FOLDER)

    def integrity_matches(
        self, node: "ScriptNode", override_url: Optional[str] = None
    ) -> bool:
        """Compare the local hash with the one announced by the remote.

        A 404 means the file is not upstream yet. A complex ETag is never a
        match.
        """
        url = override_url or node.to_remote_url()
        response = self.client.head(url)
        if response.status_code == 404:
            logger.debug(f"{url} does not exist upstream yet")
            return False
        if not response.is_success:
            raise HttpStatusError(response.status_code, url, response.reason_phrase)

        upstream = remote_hash(response.headers.get("etag"))
        if upstream is UNKNOWN:
            logger.debug(f"Remote hash of {url} is unknown, not comparing")
            return False
        local = node.hash()
        matches = hashes_match(local, upstream)
        logger.debug(f"Integrity of {node.path}: matches={matches}")
        return matches
