"""Exclusion rules read from a script's ``.gitignore``.

Patterns follow gitignore syntax (``pathspec`` gitignore patterns) and are
evaluated relative to the script root.
"""

import logging
import os
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

import pathspec

from ..utils import DS_STORE_PATTERN, GITIGNORE_FILENAME

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS: list[str] = [DS_STORE_PATTERN]


def _clean_lines(lines: Sequence[str]) -> list[str]:
    """Drop blank lines and comments."""
    cleaned = []
    for line in lines:
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            cleaned.append(stripped)
    return cleaned


class ExclusionMatcher:
    """Compiled set of patterns anchored at a script root.

    Examples:
        >>> matcher = ExclusionMatcher(Path("/w/U1/s"), ["**/.DS_Store"])
        >>> matcher.matches(Path("/w/U1/s/draft/.DS_Store"))
        True
    """

    def __init__(self, root_path: Path, patterns: Sequence[str]):
        self.root_path = Path(root_path)
        self.patterns = _clean_lines(patterns)
        self._spec = pathspec.PathSpec.from_lines("gitignore", self.patterns)

    def relative(self, path: Union[str, Path]) -> Optional[str]:
        """Path relative to the root with forward slashes, or None if outside."""
        try:
            rel = os.path.relpath(os.fspath(path), os.fspath(self.root_path))
        except ValueError:
            return None
        if rel in (os.curdir, os.pardir) or rel.startswith(os.pardir + os.sep):
            return None
        return Path(rel).as_posix()

    def matches(self, path: Union[str, Path], is_dir: bool = False) -> bool:
        """Check whether any pattern matches the path.

        Args:
            path: Absolute path of a file or folder inside the root
            is_dir: Whether the path is a folder (enables ``dir/`` patterns)

        Returns:
            True if the path is excluded
        """
        if not self.patterns:
            return False
        rel = self.relative(path)
        if rel is None:
            return False
        if is_dir:
            rel += "/"
        return self._spec.match_file(rel)


class ExclusionList:
    """Load/modify/store access to the ``.gitignore`` of a script root.

    A missing file yields :data:`DEFAULT_PATTERNS`. An unreadable file is
    logged and treated as missing.
    """

    def __init__(self, root_path: Path):
        self.root_path = Path(root_path)
        self.file_path = self.root_path / GITIGNORE_FILENAME

    def load(self) -> list[str]:
        """Read the ordered pattern list."""
        if not self.file_path.exists():
            return list(DEFAULT_PATTERNS)
        try:
            text = self.file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(
                f"Could not read {self.file_path}, using default patterns: {e}"
            )
            return list(DEFAULT_PATTERNS)
        return _clean_lines(text.splitlines())

    def store(self, patterns: Sequence[str]) -> None:
        self.file_path.write_text("\n".join(patterns) + "\n", encoding="utf-8")
        logger.debug(f"Saved {len(patterns)} pattern(s) to {self.file_path}")

    def modify(self, callback: Callable[[list[str]], None]) -> list[str]:
        """Apply a callback to the pattern list and persist it if it changed.

        Args:
            callback: Mutates the list in place

        Returns:
            The resulting pattern list
        """
        before = self.load()
        patterns = list(before)
        callback(patterns)
        if patterns != before or not self.file_path.exists():
            self.store(patterns)
        return patterns

    def matcher(self) -> ExclusionMatcher:
        return ExclusionMatcher(self.root_path, self.load())

    def matches(self, path: Union[str, Path], is_dir: bool = False) -> bool:
        return self.matcher().matches(path, is_dir=is_dir)
