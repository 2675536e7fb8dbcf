"""Unit tests for the pyb6p CLI commands."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from pyb6p import __version__
from pyb6p.cli import main
from pyb6p.sync.integrity import local_hash

A_PATH = "/files/1466960/draft/scripts/a.ts"


@pytest.fixture
def runner():
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def patched_session(session):
    """Make commands use the session backed by the fake remote."""
    with patch("pyb6p.cli.Session", return_value=session):
        yield session


class TestMainGroup:
    """Tests for the main CLI group."""

    def test_main_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("push", "pull", "build", "snapshot", "status", "hash"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestHashCommand:
    """Tests for the hash command."""

    def test_prints_digest(self, runner, temp_dir):
        path = temp_dir / "file.txt"
        path.write_bytes(b"hello")
        result = runner.invoke(main, ["hash", str(path)])
        assert result.exit_code == 0
        assert result.output.splitlines()[0] == local_hash(b"hello")

    def test_json(self, runner, temp_dir):
        path = temp_dir / "file.txt"
        path.write_bytes(b"hello")
        result = runner.invoke(main, ["--json", "hash", str(path)])
        data = json.loads(result.output)
        assert data["sha512"] == local_hash(b"hello")
        assert data["size"] == 5


class TestStatusCommand:
    """Tests for the status command."""

    def test_empty_ledger(self, runner, root, patched_session):
        result = runner.invoke(main, ["status", str(root.path)])
        assert result.exit_code == 0
        assert "MyScript (U1001)" in result.output
        assert "No files have been synchronized yet" in result.output

    def test_json(self, runner, root, patched_session):
        root.ledger.modify()
        root.ledger.touch(root.draft_path / "scripts" / "a.ts", "lastPushed", "ab" * 64)
        result = runner.invoke(main, ["--json", "status", str(root.path)])
        data = json.loads(result.output)
        assert data["webdavId"] == "1466960"
        assert data["copacetic"] is True
        assert data["records"][0]["path"] == "draft/scripts/a.ts"
        assert data["records"][0]["last_pulled"] == "-"

    def test_not_copacetic_warning(self, runner, root, patched_session):
        (root.info_path / "permissions.json").unlink()
        result = runner.invoke(main, ["status", str(root.path)])
        assert result.exit_code == 0
        assert "not copacetic" in result.output

    def test_path_outside_script(self, runner, temp_dir):
        result = runner.invoke(main, ["status", str(temp_dir)])
        assert result.exit_code == 1
        assert "Error" in result.output


class TestPushCommand:
    """Tests for the push command."""

    def test_push(self, runner, root, remote, patched_session):
        result = runner.invoke(
            main, ["--json", "push", str(root.path), "--webdav-id", "1466960"]
        )
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["uploads"] == 1
        assert A_PATH in remote.files

    def test_dry_run(self, runner, root, remote, patched_session):
        result = runner.invoke(
            main, ["-q", "push", str(root.path), "--webdav-id", "1466960", "--dry-run"]
        )
        assert result.exit_code == 0
        assert remote.methods("PUT") == []

    def test_failure_exit_code(self, runner, root, remote, patched_session):
        remote.statuses[("PUT", A_PATH)] = 500
        result = runner.invoke(
            main, ["-q", "push", str(root.path), "--webdav-id", "1466960"]
        )
        assert result.exit_code == 1

    def test_not_copacetic(self, runner, root, patched_session):
        (root.objects_path / "imports.ts").unlink()
        result = runner.invoke(
            main, ["push", str(root.path), "--webdav-id", "1466960"]
        )
        assert result.exit_code == 1
        assert "copacetic" in result.output

    def test_push_delete(self, runner, root, remote, patched_session):
        remote.put_file("draft/scripts/gone.ts", b"gone")
        result = runner.invoke(
            main,
            ["--json", "push", str(root.path), "--webdav-id", "1466960", "--delete"],
        )
        assert result.exit_code == 0
        assert json.loads(result.output)["deletions"] == 1
        assert "/files/1466960/draft/scripts/gone.ts" not in remote.files


class TestPullCommand:
    """Tests for the pull command."""

    def test_pull_paths(self, runner, root, remote, patched_session):
        remote.put_file("draft/scripts/b.ts", b"b")
        result = runner.invoke(
            main,
            [
                "-q",
                "pull",
                str(root.path),
                "draft/scripts/b.ts",
                "--webdav-id",
                "1466960",
            ],
        )
        assert result.exit_code == 0
        assert (root.draft_path / "scripts" / "b.ts").read_bytes() == b"b"

    def test_pull_tracked(self, runner, root, remote, patched_session):
        root.ledger.modify()
        root.ledger.touch(root.draft_path / "scripts" / "a.ts", "lastPulled", "h")
        remote.put_file("draft/scripts/a.ts", b"upstream")
        result = runner.invoke(main, ["--json", "pull", str(root.path), "--tracked"])
        assert result.exit_code == 0
        assert json.loads(result.output)["downloads"] == 1

    def test_pull_everything_listed(self, runner, root, remote, patched_session):
        remote.put_file("draft/scripts/a.ts", b"export const a = 1;\n")
        remote.put_file("draft/scripts/remote_only.ts", b"new")
        result = runner.invoke(
            main, ["--json", "pull", str(root.path), "--webdav-id", "1466960"]
        )
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert (root.draft_path / "scripts" / "remote_only.ts").read_bytes() == b"new"
        assert str(root.info_path) in data["stale"]
        assert data["removed"] == []

    def test_pull_delete(self, runner, root, remote, patched_session):
        remote.put_file("draft/scripts/remote_only.ts", b"new")
        result = runner.invoke(
            main,
            [
                "-q",
                "pull",
                str(root.path),
                "--webdav-id",
                "1466960",
                "--delete",
                "--no-trash",
            ],
        )
        assert result.exit_code == 0
        assert not (root.draft_path / "scripts" / "a.ts").exists()
        assert (root.draft_path / "scripts" / "remote_only.ts").exists()


class TestBuildCommand:
    """Tests for the build command."""

    def test_build_without_sources(self, runner, root, patched_session):
        (root.draft_path / "scripts" / "a.ts").unlink()
        (root.draft_path / "scripts" / "data.json").write_text("{}")
        result = runner.invoke(main, ["build", str(root.path)])
        assert result.exit_code == 0
        assert "Build Complete" in result.output
        assert (root.build_path / "scripts" / "data.json").exists()


class TestSnapshotCommand:
    """Tests for the snapshot command."""

    def test_snapshot(self, runner, root, patched_session):
        result = runner.invoke(main, ["snapshot", str(root.path)])
        assert result.exit_code == 0
        assert "Snapshot written" in result.output
        assert (root.snapshot_path / "scripts" / "a.ts").exists()

    def test_json(self, runner, root, patched_session):
        result = runner.invoke(main, ["--json", "snapshot", str(root.path)])
        data = json.loads(result.output)
        assert data["snapshot"] == str(root.snapshot_path)
        assert str(root.snapshot_path / "scripts" / "a.ts") in data["files"]

    def test_not_copacetic(self, runner, root, patched_session):
        (root.objects_path / "imports.ts").unlink()
        result = runner.invoke(main, ["snapshot", str(root.path)])
        assert result.exit_code == 1
        assert "copacetic" in result.output
