"""The root folder of a single script on disk."""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from ..exceptions import ConfigLookupError
from ..session import Session
from ..utils import (
    BUILD_FOLDER,
    CONFIG_JSON,
    DECLARATIONS_FOLDER,
    DRAFT_FOLDER,
    IMPORTS_FILE,
    INFO_FILES,
    INFO_FOLDER,
    OBJECTS_FOLDER,
    SNAPSHOT_FOLDER,
)
from .ignore import ExclusionList
from .location import ScriptLocation, parse_location
from .state import LedgerStore

logger = logging.getLogger(__name__)


class ScriptRoot:
    """A script folder identified by prepending path, organization and name.

    Any path inside the script can be used to build the root; every zone of
    the same script yields an equal root.

    Examples:
        >>> root = ScriptRoot("/work/U1001/MyScript/draft/scripts/a.ts", session)
        >>> root.path
        PosixPath('/work/U1001/MyScript')
    """

    def __init__(
        self,
        location: Union[ScriptLocation, str, Path],
        session: Session,
        webdav_id: Optional[str] = None,
    ):
        """Initialize a script root.

        Args:
            location: Any location (or path) inside the script
            session: Session providing the HTTP client and organization hosts
            webdav_id: Remote id of the script; read from the ledger if omitted
        """
        if not isinstance(location, ScriptLocation):
            location = parse_location(location)
        self.location = location
        self.session = session
        self._webdav_id = webdav_id or ""

        self.path = location.root_path
        self.draft_path = self.path / DRAFT_FOLDER
        self.declarations_path = self.path / DECLARATIONS_FOLDER
        self.snapshot_path = self.path / SNAPSHOT_FOLDER
        self.build_path = self.draft_path / BUILD_FOLDER
        self.info_path = self.draft_path / INFO_FOLDER
        self.objects_path = self.draft_path / OBJECTS_FOLDER

        self.ledger = LedgerStore(
            self.path,
            script_name=location.script_name,
            organization_ref=location.organization_id,
            webdav_id=self._webdav_id,
        )
        self.exclusions = ExclusionList(self.path)

    @property
    def organization_id(self) -> str:
        return self.location.organization_id

    @property
    def script_name(self) -> str:
        return self.location.script_name

    @property
    def webdav_id(self) -> str:
        """Remote id of the script (constructor value, else the ledger's)."""
        if self._webdav_id:
            return self._webdav_id
        return self.ledger.load().webdav_id

    def remote_base_url(self) -> str:
        """Base URL of the script on the remote, ending with ``/``.

        Raises:
            ConfigLookupError: If the organization host or the webdav id is unknown
        """
        origin = self.session.origin_for(self.organization_id)
        webdav_id = self.webdav_id
        if not webdav_id:
            raise ConfigLookupError(f"webdavId for {self.path}")
        return f"https://{origin}/files/{webdav_id}/"

    def read_config_json(self) -> dict:
        """Read ``draft/info/config.json``.

        Raises:
            ConfigLookupError: If the file is missing or is not a JSON object
        """
        config_path = self.info_path / CONFIG_JSON
        if not config_path.is_file():
            raise ConfigLookupError(CONFIG_JSON, 0)
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConfigLookupError(f"{CONFIG_JSON} content ({e})") from e
        if not isinstance(data, dict):
            raise ConfigLookupError(f"{CONFIG_JSON} content (not an object)")
        return data

    def external_models(self) -> list[str]:
        """Names of the models declared in config.json."""
        models = self.read_config_json().get("models") or []
        return [
            str(model["name"])
            for model in models
            if isinstance(model, dict) and model.get("name")
        ]

    @staticmethod
    def _folder_contents(folder: Path) -> list[Path]:
        if not folder.is_dir():
            return []
        return sorted(p for p in folder.iterdir() if p.is_file())

    def info_contents(self) -> list[Path]:
        return self._folder_contents(self.info_path)

    def objects_contents(self) -> list[Path]:
        return self._folder_contents(self.objects_path)

    def is_copacetic(self) -> bool:
        """Check that info/ and objects/ hold exactly their expected files."""
        info_names = sorted(p.name for p in self.info_contents())
        objects_names = [p.name for p in self.objects_contents()]
        copacetic = info_names == sorted(INFO_FILES) and objects_names == [
            IMPORTS_FILE
        ]
        if not copacetic:
            logger.debug(
                f"{self.path} is not copacetic: info={info_names}, "
                f"objects={objects_names}"
            )
        return copacetic

    def _base_url_or_none(self) -> Optional[str]:
        try:
            return self.remote_base_url()
        except ConfigLookupError:
            return None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ScriptRoot):
            return NotImplemented
        return (
            self.location.root_key == other.location.root_key
            and self._base_url_or_none() == other._base_url_or_none()
        )

    def __hash__(self) -> int:
        return hash(self.location.root_key)

    def __repr__(self) -> str:
        return f"ScriptRoot({str(self.path)!r})"
