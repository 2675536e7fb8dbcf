"""Tests for ScriptRoot."""

import json

import pytest

from pyb6p.exceptions import ConfigLookupError
from pyb6p.session import OrgCache, Session
from pyb6p.sync.root import ScriptRoot


class TestScriptRoot:
    """Test layout, remote base URL and structural checks."""

    def test_folders(self, root, script_path):
        assert root.path == script_path
        assert root.draft_path == script_path / "draft"
        assert root.declarations_path == script_path / "declarations"
        assert root.snapshot_path == script_path / "snapshot"
        assert root.build_path == script_path / "draft" / ".build"
        assert root.info_path == script_path / "draft" / "info"
        assert root.objects_path == script_path / "draft" / "objects"
        assert root.ledger.file_path == script_path / ".b6p_metadata.json"
        assert root.exclusions.file_path == script_path / ".gitignore"

    def test_built_from_any_child(self, root, script_path, session, webdav_id):
        child = ScriptRoot(
            script_path / "draft" / "scripts" / "a.ts", session, webdav_id=webdav_id
        )
        assert child.path == root.path
        assert child == root
        assert hash(child) == hash(root)

    def test_remote_base_url(self, root, base_url):
        assert root.remote_base_url() == base_url

    def test_webdav_id_from_ledger(self, script_path, session):
        ScriptRoot(script_path, session, webdav_id="777").ledger.modify()
        root = ScriptRoot(script_path, session)
        assert root.webdav_id == "777"
        assert root.remote_base_url().endswith("/files/777/")

    def test_missing_webdav_id(self, script_path, session):
        root = ScriptRoot(script_path, session)
        with pytest.raises(ConfigLookupError, match="webdavId"):
            root.remote_base_url()

    def test_unknown_organization(self, script_path, session, webdav_id):
        session = Session(client=session.client, org_cache=OrgCache({}))
        root = ScriptRoot(script_path, session, webdav_id=webdav_id)
        with pytest.raises(ConfigLookupError, match="U1001"):
            root.remote_base_url()

    def test_roots_with_different_remotes_are_not_equal(self, script_path, session):
        a = ScriptRoot(script_path, session, webdav_id="1")
        b = ScriptRoot(script_path, session, webdav_id="2")
        assert a != b

    def test_read_config_json(self, root):
        (root.info_path / "config.json").write_text(
            json.dumps({"models": [{"name": "Person.ts"}, {"name": "Org.ts"}, {}]})
        )
        assert root.read_config_json()["models"][0] == {"name": "Person.ts"}
        assert root.external_models() == ["Person.ts", "Org.ts"]

    def test_config_json_without_models(self, root):
        (root.info_path / "config.json").write_text("{}")
        assert root.external_models() == []

    def test_missing_config_json(self, root):
        (root.info_path / "config.json").unlink()
        with pytest.raises(ConfigLookupError) as exc_info:
            root.read_config_json()
        assert exc_info.value.count == 0
        assert "config.json" in str(exc_info.value)

    def test_invalid_config_json(self, root):
        (root.info_path / "config.json").write_text("not json")
        with pytest.raises(ConfigLookupError):
            root.external_models()

    def test_info_and_objects_contents(self, root):
        assert [p.name for p in root.info_contents()] == [
            "config.json",
            "metadata.json",
            "permissions.json",
        ]
        assert [p.name for p in root.objects_contents()] == ["imports.ts"]

    def test_is_copacetic(self, root):
        assert root.is_copacetic()

    def test_extra_info_file_is_not_copacetic(self, root):
        (root.info_path / "extra.json").write_text("{}")
        assert not root.is_copacetic()

    def test_missing_imports_is_not_copacetic(self, root):
        (root.objects_path / "imports.ts").unlink()
        assert not root.is_copacetic()

    def test_missing_draft_is_not_copacetic(self, temp_dir, session):
        root = ScriptRoot(temp_dir / "U5" / "Empty", session)
        assert root.info_contents() == []
        assert not root.is_copacetic()
