"""Per-script ledger of past pushes and pulls.

The ledger lives in ``.b6p_metadata.json`` at the script root and records,
for every local file that was transferred, when it was last pushed or
pulled and the hash that was verified at that moment. A missing, empty or
malformed ledger is never fatal: it is replaced by a fresh one.
"""

import copy
import json
import logging
import os
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Literal, Optional, Union

from ..exceptions import LedgerCorruptionError, TransientIOError
from ..utils import METADATA_FILENAME, http_date

logger = logging.getLogger(__name__)

TouchKind = Literal["lastPushed", "lastPulled"]
TOUCH_KINDS = ("lastPushed", "lastPulled")

_locks: dict[str, threading.RLock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    """One lock per ledger file, shared by every store pointing at it."""
    key = os.path.abspath(os.fspath(path))
    with _locks_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = threading.RLock()
            _locks[key] = lock
        return lock


@dataclass
class PushPullRecord:
    """Transfer history of a single local file."""

    downstairs_path: str
    """Absolute local path of the file (unique key)"""

    last_pushed: Optional[str] = None
    """RFC 1123 timestamp of the last successful push"""

    last_pulled: Optional[str] = None
    """RFC 1123 timestamp of the last successful pull"""

    last_verified_hash: str = ""
    """SHA-512 of the local content at the last transfer"""

    def to_dict(self) -> dict:
        return {
            "downstairsPath": self.downstairs_path,
            "lastPushed": self.last_pushed,
            "lastPulled": self.last_pulled,
            "lastVerifiedHash": self.last_verified_hash,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PushPullRecord":
        if not isinstance(data, dict) or not data.get("downstairsPath"):
            raise LedgerCorruptionError(f"Invalid push/pull record: {data!r}")
        return cls(
            downstairs_path=str(data["downstairsPath"]),
            last_pushed=data.get("lastPushed"),
            last_pulled=data.get("lastPulled"),
            last_verified_hash=data.get("lastVerifiedHash") or "",
        )


@dataclass
class MetadataLedger:
    """Content of ``.b6p_metadata.json``."""

    script_name: str = ""
    organization_ref: str = ""
    webdav_id: str = ""
    push_pull_records: list[PushPullRecord] = field(default_factory=list)

    def find(self, path: Union[str, Path]) -> Optional[PushPullRecord]:
        key = os.fspath(path)
        for record in self.push_pull_records:
            if record.downstairs_path == key:
                return record
        return None

    def remove(self, path: Union[str, Path]) -> bool:
        key = os.fspath(path)
        before = len(self.push_pull_records)
        self.push_pull_records = [
            r for r in self.push_pull_records if r.downstairs_path != key
        ]
        return len(self.push_pull_records) != before

    def to_dict(self) -> dict:
        return {
            "scriptName": self.script_name,
            "organizationRef": self.organization_ref,
            "webdavId": self.webdav_id,
            "pushPullRecords": [r.to_dict() for r in self.push_pull_records],
        }

    @classmethod
    def from_dict(cls, data: object) -> "MetadataLedger":
        if not isinstance(data, dict):
            raise LedgerCorruptionError("Ledger root is not an object")
        records = data.get("pushPullRecords", [])
        if not isinstance(records, list):
            raise LedgerCorruptionError("pushPullRecords is not a list")
        ledger = cls(
            script_name=str(data.get("scriptName") or ""),
            organization_ref=str(data.get("organizationRef") or ""),
            webdav_id=str(data.get("webdavId") or ""),
        )
        # Duplicate paths collapse onto the last record seen
        for raw in records:
            record = PushPullRecord.from_dict(raw)
            ledger.remove(record.downstairs_path)
            ledger.push_pull_records.append(record)
        return ledger

    @classmethod
    def parse(cls, content: bytes) -> "MetadataLedger":
        """Parse raw file content.

        Raises:
            LedgerCorruptionError: If the content is empty or not a ledger
        """
        if not content.strip():
            raise LedgerCorruptionError("Ledger file is empty")
        try:
            data = json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise LedgerCorruptionError(f"Ledger file is not valid JSON: {e}") from e
        return cls.from_dict(data)


class LedgerStore:
    """Loads, mutates and persists the ledger of one script root.

    All :meth:`modify` calls on the same ledger file are serialized with a
    per-file lock, so concurrent transfers in a batch cannot overwrite each
    other's records.
    """

    def __init__(
        self,
        root_path: Path,
        script_name: str = "",
        organization_ref: str = "",
        webdav_id: str = "",
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the store.

        Args:
            root_path: Script root folder
            script_name: Written into a freshly created ledger
            organization_ref: Written into a freshly created ledger
            webdav_id: Written into a freshly created ledger
            retry_attempts: Read attempts on I/O errors before giving up
            retry_delay: Seconds to wait between read attempts
            sleep: Sleep function (replaced in tests)
        """
        self.root_path = Path(root_path)
        self.file_path = self.root_path / METADATA_FILENAME
        self.script_name = script_name
        self.organization_ref = organization_ref
        self.webdav_id = webdav_id
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay
        self._sleep = sleep
        self._lock = _lock_for(self.file_path)

    def fresh(self) -> MetadataLedger:
        return MetadataLedger(
            script_name=self.script_name,
            organization_ref=self.organization_ref,
            webdav_id=self.webdav_id,
        )

    def _read_bytes(self) -> Optional[bytes]:
        """Read the ledger file, retrying on genuine I/O errors.

        Returns:
            File content, or None if the file does not exist
        """
        last_error: Optional[OSError] = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return self.file_path.read_bytes()
            except FileNotFoundError:
                return None
            except OSError as e:
                last_error = e
                logger.error(
                    f"Ledger read error, attempt {attempt}/{self.retry_attempts}: {e}"
                )
                if attempt < self.retry_attempts:
                    self._sleep(self.retry_delay)
        raise TransientIOError(
            f"Failed to read {self.file_path} after {self.retry_attempts} attempts"
        ) from last_error

    def _load(self) -> tuple[MetadataLedger, bool]:
        """Load the ledger and report whether it had to be recreated."""
        if not self.file_path.exists():
            logger.debug(f"No ledger found at {self.file_path}")
            return self.fresh(), True
        content = self._read_bytes()
        if content is None:
            return self.fresh(), True
        try:
            ledger = MetadataLedger.parse(content)
        except LedgerCorruptionError as e:
            logger.warning(f"Ledger at {self.file_path} is corrupt, recreating: {e}")
            return self.fresh(), True
        logger.debug(
            f"Loaded ledger with {len(ledger.push_pull_records)} record(s) "
            f"from {self.file_path}"
        )
        return ledger, False

    def load(self) -> MetadataLedger:
        """Load the ledger (fresh when missing or corrupt).

        Raises:
            TransientIOError: If the file exists but cannot be read
        """
        with self._lock:
            return self._load()[0]

    def save(self, ledger: MetadataLedger) -> None:
        """Write the ledger, replacing the file in one step."""
        with self._lock:
            tmp_path = self.file_path.with_name(self.file_path.name + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(ledger.to_dict(), f, indent=2)
            os.replace(tmp_path, self.file_path)
            logger.debug(
                f"Saved ledger with {len(ledger.push_pull_records)} record(s) "
                f"to {self.file_path}"
            )

    def modify(
        self, callback: Optional[Callable[[MetadataLedger], None]] = None
    ) -> MetadataLedger:
        """Load, apply a callback, and persist only if something changed.

        A freshly created ledger is always persisted.

        Args:
            callback: Mutates the ledger in place

        Returns:
            The resulting ledger
        """
        with self._lock:
            ledger, fresh = self._load()
            before = ledger.to_dict()
            working = copy.deepcopy(ledger)
            if callback is not None:
                callback(working)
            if fresh or working.to_dict() != before:
                self.save(working)
            return working

    def touch(
        self, path: Union[str, Path], kind: TouchKind, file_hash: str
    ) -> PushPullRecord:
        """Record a successful transfer of a file.

        Args:
            path: Local path of the transferred file
            kind: ``"lastPushed"`` or ``"lastPulled"``
            file_hash: Hash verified for the local content

        Returns:
            The upserted record
        """
        if kind not in TOUCH_KINDS:
            raise ValueError(f"Invalid touch kind: {kind}")
        key = os.fspath(path)
        now = http_date()

        touched: list[PushPullRecord] = []

        def _touch(ledger: MetadataLedger) -> None:
            record = ledger.find(key)
            if record is None:
                record = PushPullRecord(downstairs_path=key)
                ledger.push_pull_records.append(record)
            if kind == "lastPushed":
                record.last_pushed = now
            else:
                record.last_pulled = now
            record.last_verified_hash = file_hash
            touched.append(record)

        self.modify(_touch)
        return touched[0]

    def find(self, path: Union[str, Path]) -> Optional[PushPullRecord]:
        return self.load().find(path)

    def remove(self, path: Union[str, Path]) -> None:
        """Forget a file; absence of a record means "never synchronized"."""
        self.modify(lambda ledger: ledger.remove(path))

    def prune(self, keep: Callable[[str], bool]) -> list[str]:
        """Drop every record whose path fails ``keep``.

        Returns:
            Paths of the removed records
        """
        removed: list[str] = []

        def _prune(ledger: MetadataLedger) -> None:
            kept = []
            for record in ledger.push_pull_records:
                if keep(record.downstairs_path):
                    kept.append(record)
                else:
                    removed.append(record.downstairs_path)
            ledger.push_pull_records = kept

        self.modify(_prune)
        if removed:
            logger.debug(f"Pruned {len(removed)} ledger record(s)")
        return removed

    def forget_tree(self, path: Union[str, Path]) -> list[str]:
        """Drop the record of ``path`` and of everything below it."""
        key = os.fspath(path).rstrip("/\\")
        prefixes = (key + "/", key + "\\")
        return self.prune(lambda p: p != key and not p.startswith(prefixes))
