"""Command line interface for pyb6p."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from . import __version__
from .exceptions import B6PError
from .output import OutputFormatter
from .session import Session
from .sync.build import BuildReconciler
from .sync.engine import SyncEngine
from .sync.integrity import hash_file
from .sync.root import ScriptRoot
from .utils import format_size

logger = logging.getLogger(__name__)


def _open_root(path: str, webdav_id: Optional[str] = None) -> ScriptRoot:
    """Create a session and the script root containing ``path``."""
    session = Session()
    return ScriptRoot(Path(path).resolve(), session, webdav_id=webdav_id)


def _exit_on_failures(ctx: Any, out: OutputFormatter, stats: dict) -> None:
    if out.json_output:
        out.output_json(
            {
                "uploads": stats["uploads"],
                "downloads": stats["downloads"],
                "deletions": stats["deletions"],
                "skips": stats["skips"],
                "failures": stats["failures"],
                "results": [
                    {
                        "path": r.path,
                        "action": r.action,
                        "url": r.url,
                        "status": r.status_code,
                        "reason": r.reason,
                        "error": str(r.error) if r.error else None,
                    }
                    for r in stats["results"]
                ],
                "stale": stats["stale"],
                "removed": stats.get("removed", []),
            }
        )
    if stats["failures"] > 0:
        ctx.exit(1)


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """pyb6p - Push, pull and build scripts of a remote document store."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pyb6p").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.option("--target", "-t", help="Push to this base URL instead of the script's")
@click.option("--webdav-id", help="Remote id of the script (default: from ledger)")
@click.option("--dry-run", is_flag=True, help="Show what would be pushed")
@click.option(
    "--delete",
    "delete_remote",
    is_flag=True,
    help="Delete remote files that no longer exist locally",
)
@click.option("--workers", "-w", type=int, help="Number of parallel transfers")
@click.pass_context
def push(
    ctx: Any,
    path: str,
    target: Optional[str],
    webdav_id: Optional[str],
    dry_run: bool,
    delete_remote: bool,
    workers: Optional[int],
) -> None:
    """Push the script containing PATH to the remote."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        root = _open_root(path, webdav_id)
        engine = SyncEngine(
            root.session,
            output=OutputFormatter(quiet=out.quiet or out.json_output),
            max_workers=workers,
        )
        stats = engine.push(
            root,
            target_base_url=target,
            dry_run=dry_run,
            delete_remote=delete_remote,
        )
    except B6PError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    _exit_on_failures(ctx, out, stats)


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.argument("remote_paths", nargs=-1)
@click.option("--webdav-id", help="Remote id of the script (default: from ledger)")
@click.option(
    "--changed-only",
    is_flag=True,
    help="Skip files the remote reports unchanged since the last pull",
)
@click.option(
    "--tracked",
    is_flag=True,
    help="Pull only the files recorded in the ledger",
)
@click.option(
    "--delete",
    "delete_local",
    is_flag=True,
    help="Delete local files the remote no longer lists",
)
@click.option(
    "--no-trash",
    is_flag=True,
    help="Delete permanently instead of moving to the trash",
)
@click.option("--workers", "-w", type=int, help="Number of parallel transfers")
@click.pass_context
def pull(
    ctx: Any,
    path: str,
    remote_paths: tuple[str, ...],
    webdav_id: Optional[str],
    changed_only: bool,
    tracked: bool,
    delete_local: bool,
    no_trash: bool,
    workers: Optional[int],
) -> None:
    """Pull files into the script containing PATH.

    REMOTE_PATHS are zone-relative (e.g. draft/scripts/a.ts). Without them,
    every file the remote lists is pulled, or with --tracked every file
    recorded in the ledger.
    """
    out: OutputFormatter = ctx.obj["out"]
    try:
        root = _open_root(path, webdav_id)
        engine = SyncEngine(
            root.session,
            output=OutputFormatter(quiet=out.quiet or out.json_output),
            max_workers=workers,
        )
        if remote_paths:
            stats = engine.pull(root, remote_paths, only_changed=changed_only)
        elif tracked:
            stats = engine.pull_tracked(root, only_changed=changed_only)
        else:
            stats = engine.pull_all(
                root,
                only_changed=changed_only,
                delete_local=delete_local,
                use_trash=not no_trash,
            )
    except B6PError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    _exit_on_failures(ctx, out, stats)


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.pass_context
def build(ctx: Any, path: str) -> None:
    """Rebuild draft/.build of the script containing PATH."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        root = _open_root(path)
        report = BuildReconciler().reconcile(root)
    except B6PError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json(
            {
                "sources": [str(p) for p in report.sources],
                "emitted": [str(p) for p in report.emitted],
                "copied": [str(p) for p in report.copied],
                "removed": [str(p) for p in report.removed],
                "pruned": report.pruned,
                "diagnostics": report.diagnostics,
            }
        )
        return

    for diagnostic in report.diagnostics:
        out.warning(diagnostic)
    out.print_summary(
        "Build Complete",
        [
            ("Compiled", f"{len(report.sources)} file(s)"),
            ("Emitted", f"{len(report.emitted)} file(s)"),
            ("Copied", f"{len(report.copied)} file(s)"),
            ("Orphans removed", len(report.removed)),
            ("Ledger records pruned", len(report.pruned)),
        ],
    )


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.pass_context
def snapshot(ctx: Any, path: str) -> None:
    """Copy the draft of the script containing PATH to snapshot/."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        root = _open_root(path)
        engine = SyncEngine(root.session, output=OutputFormatter(quiet=True))
        written = engine.snapshot(root)
    except B6PError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json(
            {"snapshot": str(root.snapshot_path), "files": [str(p) for p in written]}
        )
        return
    out.success(f"Snapshot written to {root.snapshot_path}")
    out.info(f"  Files: {len(written)}")


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.pass_context
def status(ctx: Any, path: str) -> None:
    """Show the ledger of the script containing PATH."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        root = _open_root(path)
        ledger = root.ledger.load()
        copacetic = root.is_copacetic()
    except B6PError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    rows = []
    for record in ledger.push_pull_records:
        try:
            shown = str(Path(record.downstairs_path).relative_to(root.path))
        except ValueError:
            shown = record.downstairs_path
        rows.append(
            {
                "path": shown,
                "last_pushed": record.last_pushed or "-",
                "last_pulled": record.last_pulled or "-",
                "hash": record.last_verified_hash[:12],
            }
        )

    if out.json_output:
        out.output_json(
            {
                "script": root.script_name,
                "organization": root.organization_id,
                "webdavId": ledger.webdav_id,
                "copacetic": copacetic,
                "records": rows,
            }
        )
        return

    out.info(f"Script: {root.script_name} ({root.organization_id})")
    out.info(f"Webdav id: {ledger.webdav_id or '-'}")
    if not copacetic:
        out.warning("Script is not copacetic, check draft/info and draft/objects")
    if rows:
        out.output_table(
            rows,
            ["path", "last_pushed", "last_pulled", "hash"],
            {
                "path": "Path",
                "last_pushed": "Last pushed",
                "last_pulled": "Last pulled",
                "hash": "Hash",
            },
        )
    else:
        out.info("No files have been synchronized yet")


@main.command(name="hash")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def hash_command(ctx: Any, path: str) -> None:
    """Print the SHA-512 of a local file, as compared against remote ETags."""
    out: OutputFormatter = ctx.obj["out"]
    file_path = Path(path)
    digest = hash_file(file_path)
    if out.json_output:
        out.output_json(
            {"path": str(file_path), "sha512": digest, "size": file_path.stat().st_size}
        )
    else:
        click.echo(digest)
        out.info(f"{file_path.name} ({format_size(file_path.stat().st_size)})")


if __name__ == "__main__":
    main()
