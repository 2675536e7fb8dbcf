"""Single-file transfers between the local tree and the remote."""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from send2trash import send2trash

from ..exceptions import IntegrityMismatchError
from ..utils import NOT_APPLICABLE_STATUS
from .comparator import SyncDecisionEngine
from .integrity import EtagKind, classify_etag, hashes_match, local_hash, remote_hash

if TYPE_CHECKING:
    from ..session import Session
    from .nodes import ScriptNode

logger = logging.getLogger(__name__)

__all__ = ["NOT_APPLICABLE_STATUS", "TransferOrchestrator", "TransferResult"]


@dataclass
class TransferResult:
    """Outcome of one upload, download or remote deletion."""

    path: str
    """Local path of the node"""

    action: str
    """``"upload"``, ``"download"`` or ``"delete"``"""

    url: Optional[str] = None
    """Remote URL involved, if one was resolved"""

    status_code: Optional[int] = None
    """HTTP status, or :data:`NOT_APPLICABLE_STATUS` for the sentinel"""

    reason: str = ""
    """Why nothing was transferred (empty when bytes moved)"""

    file_hash: str = ""
    """SHA-512 of the transferred content"""

    error: Optional[Exception] = None
    """Set by batch operations when the transfer failed"""

    @property
    def not_applicable(self) -> bool:
        return self.status_code == NOT_APPLICABLE_STATUS

    @property
    def skipped(self) -> bool:
        return self.error is None and bool(self.reason)

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def transferred(self) -> bool:
        return self.error is None and not self.reason


class TransferOrchestrator:
    """Uploads and downloads single nodes and records them in the ledger.

    Errors are raised to the caller; a successful transfer is always
    followed by a ledger touch carrying the verified hash.
    """

    def __init__(self, session: "Session"):
        self.session = session
        self.client = session.client
        self.decisions = SyncDecisionEngine(session.client)

    @staticmethod
    def _not_applicable(node: "ScriptNode", action: str, reason: str) -> TransferResult:
        return TransferResult(
            path=os.fspath(node.path),
            action=action,
            status_code=NOT_APPLICABLE_STATUS,
            reason=reason,
        )

    def upload(
        self, node: "ScriptNode", target_url: Optional[str] = None
    ) -> TransferResult:
        """Push a file unless the decision chain gives a reason not to.

        Args:
            node: File to push
            target_url: Remote URL to push to instead of the node's own

        Returns:
            Result with the skip reason, or the PUT status

        Raises:
            HttpStatusError: If the PUT is answered with a non-2xx status
        """
        if node.is_folder:
            return self._not_applicable(node, "upload", "is a folder")

        reason = self.decisions.reason_to_not_push(node, node.root, target_url)
        if reason:
            logger.debug(f"Not pushing {node.path}: {reason}")
            return TransferResult(
                path=os.fspath(node.path),
                action="upload",
                url=target_url,
                reason=reason,
            )

        url = target_url or node.to_remote_url()
        data = node.read_bytes()
        file_hash = local_hash(data)
        logger.debug(f"Uploading {node.path} to {url}")
        response = self.client.put(url, data)
        node.root.ledger.touch(node.path, "lastPushed", file_hash)
        return TransferResult(
            path=os.fspath(node.path),
            action="upload",
            url=url,
            status_code=response.status_code,
            file_hash=file_hash,
        )

    def download(self, node: "ScriptNode") -> TransferResult:
        """Pull a file and verify it against the remote ETag.

        An excluded file is not fetched; its ledger record is dropped and the
        sentinel result is returned. The written file is not rolled back when
        verification fails.

        Raises:
            HttpStatusError: If the GET is answered with a non-2xx status
            EtagFormatError: If the ETag matches no accepted shape
            IntegrityMismatchError: If the written bytes do not match the ETag
        """
        if node.is_folder:
            return self._not_applicable(node, "download", "is a folder")

        if node.root.exclusions.matches(node.path):
            logger.info(f"Not downloading {node.name}: ignored by .gitignore")
            node.root.ledger.remove(node.path)
            return self._not_applicable(node, "download", "is ignored")

        url = node.to_remote_url()
        logger.debug(f"Downloading {url}")
        response = self.client.get(url)
        node.write_bytes(response.content)

        etag = response.headers.get("etag")
        kind = classify_etag(etag)
        file_hash = node.hash()
        if kind == EtagKind.COMPLEX:
            logger.debug(f"Skipping integrity check of {url}, complex etag")
        else:
            expected = remote_hash(etag)
            if not hashes_match(file_hash, expected):
                raise IntegrityMismatchError(
                    os.fspath(node.path), str(expected), file_hash
                )

        node.root.ledger.touch(node.path, "lastPulled", file_hash)
        return TransferResult(
            path=os.fspath(node.path),
            action="download",
            url=url,
            status_code=response.status_code,
            file_hash=file_hash,
        )

    def delete_remote(
        self, node: "ScriptNode", target_url: Optional[str] = None
    ) -> TransferResult:
        """Delete the remote counterpart of a node and forget its ledger records.

        Folders are deleted with everything below them.

        Raises:
            HttpStatusError: If the DELETE is answered with a non-2xx status
        """
        url = target_url or node.to_remote_url()
        logger.debug(f"Deleting {url}")
        response = self.client.delete(url)
        node.root.ledger.forget_tree(node.path)
        return TransferResult(
            path=os.fspath(node.path),
            action="delete",
            url=url,
            status_code=response.status_code,
        )

    def delete_local(self, path: Path, use_trash: bool = True) -> None:
        """Delete a local file or folder.

        Args:
            path: File or folder to delete
            use_trash: If True, move to the system trash;
                otherwise delete permanently
        """
        if use_trash:
            send2trash(os.fspath(path))
        elif path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
        logger.info(f"Deleted local {path}")
