"""Classification of local paths into script locations.

A script lives on disk as::

    <prepending path>/U<digits>/<script name>/<zone>/<relative path>

where the zone is one of ``draft``, ``declarations``, ``snapshot`` or one of
the two special files at the script root (``.b6p_metadata.json`` and
``.gitignore``). A path that stops right after the script name is the
script root itself.
"""

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Union

from ..exceptions import PathFormatError
from ..utils import (
    DECLARATIONS_FOLDER,
    DRAFT_FOLDER,
    GITIGNORE_FILENAME,
    METADATA_FILENAME,
    SNAPSHOT_FOLDER,
)

ORGANIZATION_PATTERN = re.compile(r"^U\d+$")
_SEPARATORS = re.compile(r"[\\/]")


class Zone(str, Enum):
    """Fixed subregions of a script."""

    ROOT = "root"
    """The script folder itself"""

    DRAFT = "draft"
    """Editable sources, mirrored to ``/files/<id>/draft/``"""

    DECLARATIONS = "declarations"
    """Type declarations, pulled but never pushed"""

    SNAPSHOT = "snapshot"
    """Local-only snapshots"""

    METADATA_FILE = "metadataFile"
    """``.b6p_metadata.json`` or ``.gitignore`` at the script root"""


ZONE_TOKENS: dict[str, Zone] = {
    DRAFT_FOLDER: Zone.DRAFT,
    DECLARATIONS_FOLDER: Zone.DECLARATIONS,
    SNAPSHOT_FOLDER: Zone.SNAPSHOT,
    METADATA_FILENAME: Zone.METADATA_FILE,
    GITIGNORE_FILENAME: Zone.METADATA_FILE,
}


@dataclass(frozen=True)
class ScriptLocation:
    """Structured view of a path inside a script folder."""

    prepending_path: str
    """Everything before the organization segment"""

    organization_id: str
    """Organization segment, ``U`` followed by digits"""

    script_name: str
    """Segment after the organization; may contain spaces"""

    zone: Zone
    """Zone the path belongs to"""

    relative_path: str
    """Remainder after the zone segment, always with forward slashes"""

    path: str = field(default="", compare=False)
    """The path this location was parsed from"""

    @property
    def root_path(self) -> Path:
        """Local folder of the script this location belongs to."""
        return Path(get_shaved_name(self))

    @property
    def name(self) -> str:
        """Final path component (file or folder name)."""
        if self.relative_path:
            return self.relative_path.rsplit("/", 1)[-1]
        if self.zone == Zone.ROOT:
            return self.script_name
        return _split(self.path)[-1]

    @property
    def root_key(self) -> tuple[str, str, str]:
        """Identity of the owning script root."""
        return (self.prepending_path, self.organization_id, self.script_name)

    def same_root(self, other: "ScriptLocation") -> bool:
        return self.root_key == other.root_key

    def is_ledger_file(self) -> bool:
        return self.zone == Zone.METADATA_FILE and self.name == METADATA_FILENAME

    def is_draft_or_declarations(self) -> bool:
        return self.zone in (Zone.DRAFT, Zone.DECLARATIONS)

    def is_in_defined_folders(self) -> bool:
        return self.zone in (Zone.DRAFT, Zone.DECLARATIONS, Zone.SNAPSHOT)

    def with_relative_path(self, relative_path: str) -> "ScriptLocation":
        """Location of another path in the same zone of the same script."""
        if not self.is_in_defined_folders():
            raise PathFormatError(self.path, "a location inside a zone folder")
        parts = [p for p in _SEPARATORS.split(relative_path) if p]
        return parse_location(os.path.join(self.root_path, self.zone.value, *parts))


def _split(raw: str) -> list[str]:
    segments = _SEPARATORS.split(raw)
    while len(segments) > 1 and segments[-1] == "":
        segments.pop()
    return segments


def parse_location(path: Union[str, Path]) -> ScriptLocation:
    """Parse a local path into a :class:`ScriptLocation`.

    Args:
        path: Absolute or relative filesystem path

    Returns:
        The parsed location

    Raises:
        PathFormatError: If no organization segment followed by a script
            name is found, or the segment after the script name is not a
            known zone

    Examples:
        >>> loc = parse_location("/work/U1001/MyScript/draft/scripts/a.ts")
        >>> loc.zone, loc.script_name, loc.relative_path
        (<Zone.DRAFT: 'draft'>, 'MyScript', 'scripts/a.ts')
    """
    raw = os.fspath(path)
    segments = _split(raw)

    anchor = None
    for index, segment in enumerate(segments[:-1]):
        if ORGANIZATION_PATTERN.match(segment) and segments[index + 1]:
            anchor = index
            break
    if anchor is None:
        raise PathFormatError(raw)

    prepending_path = os.sep.join(segments[:anchor])
    if segments[:anchor] == [""]:
        prepending_path = os.sep
    organization_id = segments[anchor]
    script_name = segments[anchor + 1]
    rest = segments[anchor + 2 :]

    if not rest:
        return ScriptLocation(
            prepending_path=prepending_path,
            organization_id=organization_id,
            script_name=script_name,
            zone=Zone.ROOT,
            relative_path="",
            path=raw,
        )

    token = rest[0]
    zone = ZONE_TOKENS.get(token)
    if zone is None:
        raise PathFormatError(raw, "a zone of " + ", ".join(ZONE_TOKENS))
    relative_path = "/".join(segment for segment in rest[1:] if segment)
    if zone == Zone.METADATA_FILE and relative_path:
        raise PathFormatError(raw, f"nothing below {token}")

    return ScriptLocation(
        prepending_path=prepending_path,
        organization_id=organization_id,
        script_name=script_name,
        zone=zone,
        relative_path=relative_path,
        path=raw,
    )


def get_shaved_name(location: ScriptLocation) -> str:
    """Path of the script root, identical for every zone of one script.

    The organization segment is kept between the prepending path and the
    script name so that equally named scripts of two organizations never
    share a key.
    """
    return os.path.join(
        location.prepending_path, location.organization_id, location.script_name
    )
