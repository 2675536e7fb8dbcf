"""Batch push and pull of whole scripts."""

import logging
import os
import shutil
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Iterable, Optional
from urllib.parse import unquote, urlsplit

from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from ..exceptions import B6PError, ScriptNotCopaceticError
from ..output import OutputFormatter
from ..session import Session
from ..utils import (
    BUILD_FOLDER,
    DECLARATIONS_FOLDER,
    DRAFT_FOLDER,
    GITIGNORE_FILENAME,
    SNAPSHOT_FOLDER,
)
from .comparator import SyncDecisionEngine
from .location import Zone
from .nodes import ScriptFile, ScriptNode, create_node
from .operations import TransferOrchestrator, TransferResult
from .root import ScriptRoot

logger = logging.getLogger(__name__)

UNCHANGED_REASON = "unchanged since last pull"


class SyncEngine:
    """Runs transfers for many nodes of one script concurrently.

    Batches are best-effort: every node yields its own
    :class:`TransferResult` and a failure never cancels the other transfers.
    """

    def __init__(
        self,
        session: Session,
        output: Optional[OutputFormatter] = None,
        max_workers: Optional[int] = None,
    ):
        """Initialize sync engine.

        Args:
            session: Session shared by all transfers
            output: Output formatter for displaying progress/status
            max_workers: Number of parallel transfers (uses config if not provided)
        """
        self.session = session
        self.output = output or OutputFormatter()
        self.max_workers = max(1, max_workers or session.config.max_workers)
        self.orchestrator = TransferOrchestrator(session)
        self.decisions = SyncDecisionEngine(session.client)

    def collect_push_nodes(self, root: ScriptRoot) -> list[ScriptNode]:
        """Files considered for a push: ``.gitignore``, draft/ and declarations/.

        ``snapshot/`` and the ledger are never pushed.
        """
        paths = []
        if (root.path / GITIGNORE_FILENAME).is_file():
            paths.append(root.path / GITIGNORE_FILENAME)
        for folder in (root.draft_path, root.declarations_path):
            if folder.is_dir():
                paths.extend(sorted(p for p in folder.rglob("*") if p.is_file()))
        return [create_node(p, self.session, root) for p in paths]

    def push(
        self,
        root: ScriptRoot,
        target_base_url: Optional[str] = None,
        dry_run: bool = False,
        delete_remote: bool = False,
    ) -> dict:
        """Push every eligible file of a script.

        Args:
            root: Script to push
            target_base_url: Push to this base URL instead of the script's own
            dry_run: If True, only evaluate the decision chain
            delete_remote: After a push without failures, delete remote
                paths that have no local counterpart (dry run only lists them)

        Returns:
            Dictionary with sync statistics and the per-file results

        Raises:
            ScriptNotCopaceticError: If info/ or objects/ are incomplete

        Examples:
            >>> engine = SyncEngine(session)
            >>> stats = engine.push(root, dry_run=True)
            >>> print(f"Would upload {stats['uploads']} files")
        """
        if not root.is_copacetic():
            raise ScriptNotCopaceticError()
        nodes = self.collect_push_nodes(root)

        if not self.output.quiet:
            target = target_base_url or root.remote_base_url()
            self.output.info(f"Pushing: {root.path} -> {target}")
            if dry_run:
                self.output.info("Dry run: No changes will be made")

        def _target(node: ScriptNode) -> Optional[str]:
            if target_base_url:
                return node.to_remote_url(override_base=target_base_url)
            return None

        def _plan(node: ScriptNode) -> TransferResult:
            target = _target(node)
            reason = self.decisions.reason_to_not_push(node, root, target)
            url = target or node.to_remote_url()
            return TransferResult(
                path=os.fspath(node.path), action="upload", url=url, reason=reason
            )

        def _upload(node: ScriptNode) -> TransferResult:
            return self.orchestrator.upload(node, _target(node))

        results = self._run(
            nodes,
            _plan if dry_run else _upload,
            "upload",
            "Checking files..." if dry_run else "Pushing files...",
        )
        stats = self._tally(results)

        if delete_remote and stats["failures"]:
            logger.warning("Not cleaning up the remote, the push had failures")
        elif delete_remote:
            stale_nodes = self.find_stale_remote(root, target_base_url)

            def _delete(node: ScriptNode) -> TransferResult:
                return self.orchestrator.delete_remote(node, _target(node))

            stats["stale"] = [_target(n) or n.to_remote_url() for n in stale_nodes]
            if not dry_run:
                deletions = self._run(
                    stale_nodes, _delete, "delete", "Deleting remote files..."
                )
                stats = self._tally(results + deletions, stale=stats["stale"])

        if not self.output.quiet:
            self._display_summary(stats, dry_run)
        return stats

    def list_remote(
        self, root: ScriptRoot, base_url: Optional[str] = None
    ) -> list[str]:
        """List the synchronized part of a script on the remote.

        Args:
            root: Script to list
            base_url: List this base URL instead of the script's own

        Returns:
            Paths relative to the script root, such as ``draft/scripts/a.ts``;
            folders end with ``/``. Snapshots and build output are left out.

        Raises:
            HttpStatusError: If the listing is answered with a non-2xx status
            ListingError: If the listing cannot be parsed
        """
        base = base_url or root.remote_base_url()
        if not base.endswith("/"):
            base += "/"
        base_path = unquote(urlsplit(base).path)

        entries = []
        for path in self.session.client.propfind(base):
            if not path.startswith(base_path):
                logger.debug(f"Ignoring listed path outside {base_path}: {path}")
                continue
            relative = path[len(base_path) :]
            parts = [p for p in relative.split("/") if p]
            if not parts:
                continue
            if parts[0] == SNAPSHOT_FOLDER or parts[1:2] == [BUILD_FOLDER]:
                continue
            if parts[0] in (DRAFT_FOLDER, DECLARATIONS_FOLDER) or (
                relative == GITIGNORE_FILENAME
            ):
                entries.append(relative)
            else:
                logger.debug(f"Ignoring listed path {relative}")
        return entries

    def _local_path(self, root: ScriptRoot, entry: str) -> Path:
        return root.path.joinpath(*[p for p in entry.split("/") if p])

    def find_stale_remote(
        self, root: ScriptRoot, base_url: Optional[str] = None
    ) -> list[ScriptNode]:
        """Remote files and folders that no longer exist locally.

        Excluded paths are never reported, and a stale folder hides
        everything below it.
        """
        stale: list[str] = []
        for entry in sorted(self.list_remote(root, base_url)):
            folders = [parent for parent in stale if parent.endswith("/")]
            if any(entry.startswith(folder) for folder in folders):
                continue
            local = self._local_path(root, entry)
            is_dir = entry.endswith("/")
            if root.exclusions.matches(local, is_dir=is_dir):
                continue
            exists = local.is_dir() if is_dir else local.is_file()
            if exists:
                continue
            stale.append(entry)

        nodes = []
        for entry in stale:
            local = os.fspath(self._local_path(root, entry))
            if entry.endswith("/"):
                local += os.sep
            nodes.append(create_node(local, self.session, root))
        return nodes

    def find_stale_local(self, root: ScriptRoot, entries: Iterable[str]) -> list[Path]:
        """Local draft and declarations paths missing from a remote listing.

        The zone folders themselves, ``draft/.build`` and excluded paths are
        never reported. A stale folder is reported once, without its contents.
        """
        listed: set[tuple[str, ...]] = set()
        for entry in entries:
            parts = tuple(p for p in entry.split("/") if p)
            for end in range(1, len(parts) + 1):
                listed.add(parts[:end])

        def _key(path: Path) -> tuple[str, ...]:
            return path.relative_to(root.path).parts

        stale = []
        for folder in (root.draft_path, root.declarations_path):
            if not folder.is_dir():
                continue
            for dirpath, dirnames, filenames in os.walk(folder):
                current = Path(dirpath)
                descend = []
                for name in sorted(dirnames):
                    path = current / name
                    if path == root.build_path or name == ".git":
                        continue
                    if root.exclusions.matches(path, is_dir=True):
                        continue
                    if _key(path) in listed:
                        descend.append(name)
                    else:
                        stale.append(path)
                dirnames[:] = descend
                for name in sorted(filenames):
                    path = current / name
                    if _key(path) not in listed and not root.exclusions.matches(path):
                        stale.append(path)
        return stale

    def pull_all(
        self,
        root: ScriptRoot,
        only_changed: bool = False,
        delete_local: bool = False,
        use_trash: bool = True,
    ) -> dict:
        """Download every file the remote lists for a script.

        The ledger is not consulted, so files that were never pulled before
        arrive too. Local paths the remote does not list are reported in
        ``stats["stale"]``.

        Args:
            root: Script to pull into
            only_changed: Skip files the remote reports as unchanged since
                their last pull
            delete_local: After a pull without failures, delete the stale
                local paths and forget their ledger records
            use_trash: Move deleted paths to the system trash

        Returns:
            Dictionary with sync statistics and the per-file results
        """
        if not self.output.quiet:
            self.output.info(f"Pulling: {root.remote_base_url()} -> {root.path}")
        entries = self.list_remote(root)
        for entry in entries:
            if entry.endswith("/"):
                folder = self._local_path(root, entry)
                if not root.exclusions.matches(folder, is_dir=True):
                    folder.mkdir(parents=True, exist_ok=True)

        # .gitignore first, it decides which of the other files are fetched
        files = [e for e in entries if not e.endswith("/")]
        first = [e for e in files if e == GITIGNORE_FILENAME]
        rest = [e for e in files if e != GITIGNORE_FILENAME]
        results = self._download(self._nodes_for(root, first), only_changed)
        results += self._download(self._nodes_for(root, rest), only_changed)

        stale = self.find_stale_local(root, entries)
        stats = self._tally(results, stale=[os.fspath(p) for p in stale])
        if delete_local and stats["failures"]:
            logger.warning("Not deleting local files, the pull had failures")
        elif delete_local:
            removed = []
            for path in stale:
                try:
                    self.orchestrator.delete_local(path, use_trash=use_trash)
                except OSError as e:
                    logger.error(f"Could not delete {path}: {e}")
                    continue
                root.ledger.forget_tree(path)
                removed.append(os.fspath(path))
            stats["removed"] = removed

        if not self.output.quiet:
            self._display_summary(stats, dry_run=False)
        return stats

    def snapshot(self, root: ScriptRoot) -> list[Path]:
        """Replace ``snapshot/`` with a copy of the draft.

        ``draft/.build`` and excluded files are not copied.

        Returns:
            Paths of the written snapshot files

        Raises:
            ScriptNotCopaceticError: If info/ or objects/ are incomplete
        """
        if not root.is_copacetic():
            raise ScriptNotCopaceticError()
        if root.snapshot_path.exists():
            shutil.rmtree(root.snapshot_path)

        written = []
        for dirpath, dirnames, filenames in os.walk(root.draft_path):
            current = Path(dirpath)
            dirnames[:] = sorted(
                name
                for name in dirnames
                if current / name != root.build_path
                and not root.exclusions.matches(current / name, is_dir=True)
            )
            for name in sorted(filenames):
                path = current / name
                if root.exclusions.matches(path):
                    continue
                node = create_node(path, self.session, root)
                if isinstance(node, ScriptFile):
                    written.append(node.copy_to_snapshot())
        logger.info(f"Snapshot of {root.script_name}: {len(written)} file(s)")
        return written

    def pull(
        self,
        root: ScriptRoot,
        remote_paths: Iterable[str],
        only_changed: bool = False,
    ) -> dict:
        """Download files of a script.

        Args:
            root: Script to pull into
            remote_paths: Zone-relative paths such as ``draft/scripts/a.ts``
            only_changed: Skip files the remote reports as unchanged since
                their last pull

        Returns:
            Dictionary with sync statistics and the per-file results
        """
        return self._pull_nodes(root, self._nodes_for(root, remote_paths), only_changed)

    def _nodes_for(
        self, root: ScriptRoot, remote_paths: Iterable[str]
    ) -> list[ScriptNode]:
        nodes = []
        for remote_path in remote_paths:
            local = os.fspath(self._local_path(root, remote_path))
            if remote_path.endswith("/"):
                local += os.sep
            nodes.append(create_node(local, self.session, root))
        return nodes

    def pull_tracked(self, root: ScriptRoot, only_changed: bool = False) -> dict:
        """Download every draft and declarations file recorded in the ledger."""
        nodes = []
        for record in root.ledger.load().push_pull_records:
            try:
                node = create_node(record.downstairs_path, self.session, root)
            except B6PError as e:
                logger.warning(f"Skipping ledger record {record.downstairs_path}: {e}")
                continue
            if node.location.same_root(root.location) and node.zone in (
                Zone.DRAFT,
                Zone.DECLARATIONS,
            ):
                nodes.append(node)
        return self._pull_nodes(root, nodes, only_changed)

    def _pull_nodes(
        self, root: ScriptRoot, nodes: list[ScriptNode], only_changed: bool
    ) -> dict:
        if not self.output.quiet:
            self.output.info(f"Pulling: {root.remote_base_url()} -> {root.path}")
        stats = self._tally(self._download(nodes, only_changed))
        if not self.output.quiet:
            self._display_summary(stats, dry_run=False)
        return stats

    def _download(
        self, nodes: list[ScriptNode], only_changed: bool
    ) -> list[TransferResult]:
        def _download_one(node: ScriptNode) -> TransferResult:
            if only_changed and not node.is_folder and node.exists():
                pulled = node.last_pulled()
                if pulled is not None and not node.changed_since(pulled):
                    return TransferResult(
                        path=os.fspath(node.path),
                        action="download",
                        url=node.to_remote_url(),
                        reason=UNCHANGED_REASON,
                    )
            return self.orchestrator.download(node)

        return self._run(nodes, _download_one, "download", "Pulling files...")

    def _run(
        self,
        nodes: list[ScriptNode],
        action: Callable[[ScriptNode], TransferResult],
        action_name: str,
        description: str,
    ) -> list[TransferResult]:
        """Execute an action for every node in parallel using ThreadPoolExecutor.

        Args:
            nodes: Nodes to process
            action: Transfer to run for each node
            action_name: ``"upload"``, ``"download"`` or ``"delete"``, used
                for failed results
            description: Progress bar label

        Returns:
            One result per node, in input order
        """
        if not nodes:
            return []
        logger.debug(
            f"Executing {len(nodes)} {action_name}(s) with {self.max_workers} workers"
        )
        results: list[Optional[TransferResult]] = [None] * len(nodes)

        def execute_with_timing(node: ScriptNode) -> TransferResult:
            start = time.time()
            try:
                result = action(node)
            except Exception as e:
                logger.error(f"Error during {action_name} of {node.path}: {e}")
                result = TransferResult(
                    path=os.fspath(node.path), action=action_name, error=e
                )
            elapsed = time.time() - start
            logger.debug(f"Completed {node.path} in {elapsed:.2f}s")
            return result

        progress = None
        task = None
        if not self.output.quiet:
            progress = Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                transient=True,
            )
            progress.start()
            task = progress.add_task(description, total=len(nodes))

        try:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {
                    executor.submit(execute_with_timing, node): index
                    for index, node in enumerate(nodes)
                }
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
                    if progress is not None and task is not None:
                        progress.update(task, advance=1)
        finally:
            if progress is not None:
                progress.stop()

        return [r for r in results if r is not None]

    @staticmethod
    def _tally(
        results: list[TransferResult], stale: Optional[list[str]] = None
    ) -> dict:
        stats: dict = {
            "uploads": 0,
            "downloads": 0,
            "deletions": 0,
            "skips": 0,
            "failures": 0,
            "results": results,
            "stale": stale or [],
        }
        for result in results:
            if result.failed:
                stats["failures"] += 1
            elif result.skipped:
                stats["skips"] += 1
            elif result.action == "upload":
                stats["uploads"] += 1
            elif result.action == "delete":
                stats["deletions"] += 1
            else:
                stats["downloads"] += 1
        return stats

    def _display_summary(self, stats: dict, dry_run: bool) -> None:
        """Display sync summary.

        Args:
            stats: Statistics dictionary
            dry_run: Whether this was a dry run
        """
        for result in stats["results"]:
            if result.failed:
                self.output.error(f"{result.path}: {result.error}")

        self.output.print("")
        if dry_run:
            self.output.success("Dry run complete!")
        elif stats["failures"]:
            self.output.warning(f"Finished with {stats['failures']} failure(s)")
        else:
            self.output.success("Sync complete!")

        if stats["uploads"] > 0:
            label = "Would upload" if dry_run else "Uploaded"
            self.output.info(f"  {label}: {stats['uploads']}")
        if stats["downloads"] > 0:
            self.output.info(f"  Downloaded: {stats['downloads']}")
        if stats["deletions"] > 0:
            self.output.info(f"  Deleted remotely: {stats['deletions']}")
        if stats.get("removed"):
            self.output.info(f"  Deleted locally: {len(stats['removed'])}")
        elif stats["stale"]:
            label = "Would delete" if dry_run else "Stale"
            self.output.info(f"  {label}: {len(stats['stale'])}")
        if stats["skips"] > 0:
            self.output.info(f"  Skipped: {stats['skips']}")
        if stats["failures"] > 0:
            self.output.info(f"  Failed: {stats['failures']}")
