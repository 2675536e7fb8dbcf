"""Files and folders inside a script, and their remote counterparts."""

import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional, Union
from urllib.parse import quote

from ..exceptions import (
    HttpStatusError,
    MetadataFileOperationError,
    ModificationTimeError,
    UnmappableZoneError,
)
from ..session import Session
from ..utils import http_date, parse_http_date
from .comparator import SyncDecisionEngine
from .integrity import hash_file
from .location import ScriptLocation, Zone, parse_location
from .operations import TransferOrchestrator, TransferResult
from .root import ScriptRoot

logger = logging.getLogger(__name__)


class ScriptNode:
    """Base class for :class:`ScriptFile` and :class:`ScriptFolder`."""

    is_folder = False

    def __init__(
        self,
        path: Union[str, Path],
        session: Session,
        root: Optional[ScriptRoot] = None,
    ):
        self.location: ScriptLocation = parse_location(os.path.abspath(path))
        self.session = session
        self.root = root or ScriptRoot(self.location, session)

    @property
    def path(self) -> Path:
        return Path(self.location.path)

    @property
    def name(self) -> str:
        return self.location.name

    @property
    def zone(self) -> Zone:
        return self.location.zone

    def exists(self) -> bool:
        return self.path.exists()

    def stat(self) -> Optional[os.stat_result]:
        try:
            return self.path.stat()
        except OSError:
            return None

    def to_remote_url(self, override_base: Optional[str] = None) -> str:
        """Map the node to its remote URL.

        Args:
            override_base: Base URL to use instead of the root's

        Raises:
            MetadataFileOperationError: For the ledger file
            UnmappableZoneError: For snapshot nodes
        """
        base = override_base or self.root.remote_base_url()
        if not base.endswith("/"):
            base += "/"
        zone = self.location.zone

        if zone == Zone.ROOT:
            return base
        if zone == Zone.METADATA_FILE:
            if self.location.is_ledger_file():
                raise MetadataFileOperationError("resolve the remote URL of")
            return base + quote(self.name)
        if zone in (Zone.DRAFT, Zone.DECLARATIONS):
            url = base + zone.value + "/" + quote(self.location.relative_path)
            if self.is_folder and not url.endswith("/"):
                url += "/"
            return url
        raise UnmappableZoneError(zone.value)

    def reason_to_not_push(self, override_url: Optional[str] = None) -> str:
        engine = SyncDecisionEngine(self.session.client)
        return engine.reason_to_not_push(self, self.root, override_url)

    def remote_last_modified(self) -> datetime:
        """``Last-Modified`` of the remote counterpart.

        Raises:
            ModificationTimeError: If the header is missing or unparsable
        """
        url = self.to_remote_url()
        response = self.session.client.head(url)
        modified = parse_http_date(response.headers.get("last-modified"))
        if modified is None:
            raise ModificationTimeError(url)
        return modified

    def changed_since(self, when: datetime) -> bool:
        """Ask the remote whether it changed after ``when``.

        Raises:
            HttpStatusError: If the remote answers other than 2xx or 304
        """
        url = self.to_remote_url()
        response = self.session.client.head(
            url, headers={"If-Modified-Since": http_date(when)}
        )
        if response.status_code == 304:
            return False
        if not response.is_success:
            raise HttpStatusError(response.status_code, url, response.reason_phrase)
        return True

    def last_pushed(self) -> Optional[datetime]:
        record = self.root.ledger.find(self.path)
        return parse_http_date(record.last_pushed) if record else None

    def last_pulled(self) -> Optional[datetime]:
        record = self.root.ledger.find(self.path)
        return parse_http_date(record.last_pulled) if record else None

    def with_root(self, root: ScriptRoot) -> "ScriptNode":
        """Re-home the node onto another root.

        Raises:
            MetadataFileOperationError: For ``.b6p_metadata.json`` and ``.gitignore``
        """
        if self.location.zone == Zone.METADATA_FILE:
            raise MetadataFileOperationError("overwrite script root of")
        self.root = root
        return self

    def upload(self, target_url: Optional[str] = None) -> TransferResult:
        return TransferOrchestrator(self.session).upload(self, target_url)

    def download(self) -> TransferResult:
        return TransferOrchestrator(self.session).download(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ScriptNode):
            return NotImplemented
        return self.location == other.location and self.root == other.root

    def __hash__(self) -> int:
        return hash(self.location)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.path)!r})"


class ScriptFile(ScriptNode):
    """A file inside a script."""

    def exists(self) -> bool:
        return self.path.is_file()

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()

    def write_bytes(self, data: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(data)

    def hash(self) -> str:
        return hash_file(self.path)

    def copy_to(self, destination: Path) -> Path:
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(self.path, destination)
        return destination

    def copy_to_snapshot(self) -> Path:
        """Copy a draft file to the same relative path under ``snapshot/``."""
        if self.location.zone != Zone.DRAFT:
            raise UnmappableZoneError(self.location.zone.value)
        destination = self.root.snapshot_path.joinpath(
            *self.location.relative_path.split("/")
        )
        logger.debug(f"Snapshotting {self.path} to {destination}")
        return self.copy_to(destination)


class ScriptFolder(ScriptNode):
    """A folder inside a script."""

    is_folder = True

    def exists(self) -> bool:
        return self.path.is_dir()

    def children(self) -> list[ScriptNode]:
        if not self.exists():
            return []
        return [
            create_node(child, self.session, self.root)
            for child in sorted(self.path.iterdir())
        ]


def create_node(
    path: Union[str, Path],
    session: Session,
    root: Optional[ScriptRoot] = None,
) -> ScriptNode:
    """Build a :class:`ScriptFile` or :class:`ScriptFolder` for a path.

    Existing folders, script roots and paths ending with a separator become
    folders; everything else is treated as a file.
    """
    raw = os.fspath(path)
    if raw.endswith(("/", "\\")) or os.path.isdir(raw):
        return ScriptFolder(raw, session, root)
    node: ScriptNode = ScriptFile(raw, session, root)
    if node.zone == Zone.ROOT:
        return ScriptFolder(raw, session, node.root)
    return node
