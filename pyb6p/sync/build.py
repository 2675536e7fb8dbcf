"""Rebuild of a script's ``draft/.build`` tree from its sources.

Reconciling a script wipes the build tree, hands TypeScript sources to a
compiler once per tsconfig.json project, copies every other draft file
verbatim, deletes whatever in the build tree is neither emitted nor copied,
and finally forgets ledger records of draft files that no longer exist.
"""

import json
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Protocol, Sequence

from ..config import config
from ..exceptions import CompilationError
from ..utils import BUILD_FOLDER, INFO_FOLDER, OBJECTS_FOLDER, TSCONFIG_FILE
from .ignore import ExclusionMatcher
from .root import ScriptRoot

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".ts"
EMITTED_PREFIX = "TSFILE:"

# Used when the draft has no tsconfig.json
DEFAULT_COMPILER_OPTIONS: dict = {
    "module": "esnext",
    "target": "es2022",
    "strict": True,
    "esModuleInterop": True,
    "skipLibCheck": True,
    "forceConsistentCasingInFileNames": True,
    "sourceMap": False,
    "declaration": False,
    "noEmitOnError": False,
}


@dataclass
class CompileResult:
    """What a compiler run produced."""

    diagnostics: list[str] = field(default_factory=list)
    emitted_paths: list[Path] = field(default_factory=list)


class Compiler(Protocol):
    """Anything that turns source files into emitted files."""

    def compile(self, paths: Sequence[Path], options: dict) -> CompileResult:
        ...


class TypeScriptCompiler:
    """Runs ``tsc`` on a list of files and collects the emitted paths.

    Compiler options come from the ``project`` tsconfig.json when one is
    given; ``rootDir`` and ``outDir`` are always forced on the command line.
    """

    # Options that only make sense inside a project file
    SKIPPED_OPTIONS = ("rootDir", "outDir", "listEmittedFiles", "paths", "lib")

    def __init__(self, executable: Optional[str] = None):
        self.executable = executable or config.tsc

    def _read_tsconfig(self, tsconfig: Optional[Path]) -> dict:
        if tsconfig is None or not tsconfig.is_file():
            logger.info("No tsconfig.json found, using default compiler options")
            return dict(DEFAULT_COMPILER_OPTIONS)
        try:
            data = json.loads(tsconfig.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Could not parse {tsconfig}, using defaults: {e}")
            return dict(DEFAULT_COMPILER_OPTIONS)
        options = data.get("compilerOptions") if isinstance(data, dict) else None
        if not isinstance(options, dict):
            return dict(DEFAULT_COMPILER_OPTIONS)
        logger.debug(f"Using compiler options from {tsconfig}")
        return options

    def build_command(self, paths: Sequence[Path], options: dict) -> list[str]:
        """Assemble the ``tsc`` command line."""
        compiler_options = self._read_tsconfig(options.get("project"))
        command = [self.executable, "--listEmittedFiles"]
        for key, value in compiler_options.items():
            if key in self.SKIPPED_OPTIONS or value is None:
                continue
            if isinstance(value, bool):
                command += [f"--{key}", "true" if value else "false"]
            elif isinstance(value, (str, int, float)):
                command += [f"--{key}", str(value)]
        command += ["--rootDir", os.fspath(options["rootDir"])]
        command += ["--outDir", os.fspath(options["outDir"])]
        command += [os.fspath(p) for p in paths]
        return command

    def compile(self, paths: Sequence[Path], options: dict) -> CompileResult:
        """Compile the given files.

        Args:
            paths: TypeScript files to compile
            options: ``rootDir``, ``outDir`` and optionally ``project``
                (path of a tsconfig.json)

        Returns:
            Diagnostics and emitted file paths

        Raises:
            CompilationError: If the compiler executable cannot be run
        """
        if not paths:
            return CompileResult()
        command = self.build_command(paths, options)
        cwd = Path(options["rootDir"])
        logger.debug(f"Running {' '.join(command)}")
        try:
            proc = subprocess.run(command, cwd=cwd, capture_output=True, text=True)
        except (FileNotFoundError, PermissionError) as e:
            raise CompilationError(f"Could not run {self.executable}: {e}") from e

        result = CompileResult()
        for line in (proc.stdout + proc.stderr).splitlines():
            line = line.strip()
            if not line:
                continue
            if line.startswith(EMITTED_PREFIX):
                emitted = Path(line[len(EMITTED_PREFIX) :].strip())
                if not emitted.is_absolute():
                    emitted = cwd / emitted
                result.emitted_paths.append(emitted)
            else:
                result.diagnostics.append(line)
        return result


@dataclass
class BuildReport:
    """Summary of one reconcile run."""

    sources: list[Path] = field(default_factory=list)
    """Files handed to the compiler"""

    emitted: list[Path] = field(default_factory=list)
    """Files the compiler reported as written"""

    copied: list[Path] = field(default_factory=list)
    """Destinations of verbatim copies"""

    removed: list[Path] = field(default_factory=list)
    """Orphans deleted from the build tree"""

    pruned: list[str] = field(default_factory=list)
    """Ledger records dropped because their file is gone"""

    diagnostics: list[str] = field(default_factory=list)


def _is_under(path: Path, folder: Path) -> bool:
    try:
        path.relative_to(folder)
    except ValueError:
        return False
    return True


class BuildReconciler:
    """Rebuilds ``draft/.build`` and garbage-collects it."""

    def __init__(self, compiler: Optional[Compiler] = None):
        self.compiler = compiler or TypeScriptCompiler()

    def _walk_draft(
        self, root: ScriptRoot, matcher: ExclusionMatcher
    ) -> Iterator[Path]:
        """Yield draft files in a stable order.

        The build, info and objects folders and excluded paths are skipped.
        """
        draft = root.draft_path
        for current, dirnames, filenames in os.walk(draft):
            current_path = Path(current)
            kept = []
            for dirname in sorted(dirnames):
                dir_path = current_path / dirname
                if current_path == draft and dirname in (
                    BUILD_FOLDER,
                    INFO_FOLDER,
                    OBJECTS_FOLDER,
                ):
                    continue
                if matcher.matches(dir_path, is_dir=True):
                    continue
                kept.append(dirname)
            dirnames[:] = kept
            for filename in sorted(filenames):
                file_path = current_path / filename
                if not matcher.matches(file_path):
                    yield file_path

    def reconcile(self, root: ScriptRoot) -> BuildReport:
        """Recompile a script into its build tree.

        Not crash-safe: an interrupted run can leave an empty build tree,
        which the next run repairs.

        Args:
            root: Script to rebuild

        Returns:
            Report of what was compiled, copied, removed and pruned

        Raises:
            CompilationError: If the compiler cannot be run at all
        """
        report = BuildReport()
        draft = root.draft_path
        build = root.build_path

        if build.exists():
            logger.debug(f"Removing {build}")
            shutil.rmtree(build)
        if not draft.is_dir():
            logger.info(f"No draft folder at {draft}, nothing to build")
            return report

        projects: set[Path] = set()
        for path in self._walk_draft(root, root.exclusions.matcher()):
            if path.name == TSCONFIG_FILE:
                projects.add(path.parent)
                continue
            if path.suffix == SOURCE_SUFFIX:
                report.sources.append(path)
                continue
            destination = build / path.relative_to(draft)
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, destination)
            report.copied.append(destination)

        groups = self._group_by_project(draft, projects, report.sources)
        for base, sources in groups.items():
            options = {
                "rootDir": base,
                "outDir": build / base.relative_to(draft),
                "project": base / TSCONFIG_FILE if base in projects else None,
            }
            result = self.compiler.compile(sources, options)
            report.emitted.extend(result.emitted_paths)
            report.diagnostics.extend(result.diagnostics)
        if report.diagnostics:
            logger.error(
                "TypeScript compilation errors:\n" + "\n".join(report.diagnostics)
            )

        report.removed = self._collect_garbage(build, report.emitted + report.copied)
        report.pruned = self._prune_ledger(root)
        logger.debug(
            f"Reconciled {root.path}: {len(report.sources)} source(s), "
            f"{len(report.copied)} copied, {len(report.removed)} removed"
        )
        return report

    @staticmethod
    def _group_by_project(
        draft: Path, projects: set[Path], sources: Sequence[Path]
    ) -> dict[Path, list[Path]]:
        """Group sources by the folder of their closest tsconfig.json.

        Sources without one above them, up to the draft, fall back to the draft.
        """
        groups: dict[Path, list[Path]] = {}
        for source in sources:
            base = draft
            for parent in source.parents:
                if parent in projects:
                    base = parent
                    break
                if parent == draft:
                    break
            groups.setdefault(base, []).append(source)
        return groups

    @staticmethod
    def _collect_garbage(build: Path, expected: Sequence[Path]) -> list[Path]:
        """Delete build files that were neither emitted nor copied."""
        if not build.is_dir():
            return []
        keep = {os.path.normcase(os.path.abspath(p)) for p in expected}
        removed = []
        for current, _dirnames, filenames in os.walk(build):
            for filename in sorted(filenames):
                path = Path(current) / filename
                if os.path.normcase(os.path.abspath(path)) not in keep:
                    path.unlink()
                    removed.append(path)
        for current, _dirnames, _filenames in os.walk(build, topdown=False):
            current_path = Path(current)
            if current_path != build and not any(current_path.iterdir()):
                current_path.rmdir()
        if removed:
            logger.debug(f"Removed {len(removed)} orphan(s) from {build}")
        return removed

    @staticmethod
    def _prune_ledger(root: ScriptRoot) -> list[str]:
        draft = root.draft_path

        def keep(downstairs_path: str) -> bool:
            path = Path(downstairs_path)
            return not _is_under(path, draft) or path.exists()

        return root.ledger.prune(keep)
