"""Tests for .gitignore based exclusions."""

import warnings
from unittest.mock import patch

import pytest

from pyb6p.sync.ignore import DEFAULT_PATTERNS, ExclusionList, ExclusionMatcher


class TestExclusionMatcher:
    """Test pattern matching relative to a script root."""

    @pytest.fixture
    def root_path(self, temp_dir):
        path = temp_dir / "U1001" / "MyScript"
        path.mkdir(parents=True)
        return path

    def test_default_pattern_matches_nested_ds_store(self, root_path):
        matcher = ExclusionMatcher(root_path, DEFAULT_PATTERNS)
        assert matcher.matches(root_path / "draft" / "scripts" / ".DS_Store")
        assert matcher.matches(root_path / ".DS_Store")
        assert not matcher.matches(root_path / "draft" / "scripts" / "a.ts")

    def test_glob_pattern(self, root_path):
        matcher = ExclusionMatcher(root_path, ["*.log"])
        assert matcher.matches(root_path / "draft" / "debug.log")
        assert not matcher.matches(root_path / "draft" / "debug.ts")

    def test_directory_pattern(self, root_path):
        matcher = ExclusionMatcher(root_path, ["logs/"])
        assert matcher.matches(root_path / "draft" / "logs", is_dir=True)
        assert matcher.matches(root_path / "draft" / "logs" / "out.txt")
        assert not matcher.matches(root_path / "draft" / "logs")

    def test_anchored_pattern(self, root_path):
        matcher = ExclusionMatcher(root_path, ["/draft/tmp.ts"])
        assert matcher.matches(root_path / "draft" / "tmp.ts")
        assert not matcher.matches(root_path / "draft" / "scripts" / "tmp.ts")

    def test_negation(self, root_path):
        matcher = ExclusionMatcher(root_path, ["*.ts", "!keep.ts"])
        assert matcher.matches(root_path / "draft" / "a.ts")
        assert not matcher.matches(root_path / "draft" / "keep.ts")

    def test_path_outside_root_never_matches(self, root_path, temp_dir):
        matcher = ExclusionMatcher(root_path, ["*"])
        assert not matcher.matches(temp_dir / "other.ts")
        assert not matcher.matches(root_path)

    def test_no_patterns(self, root_path):
        matcher = ExclusionMatcher(root_path, [])
        assert not matcher.matches(root_path / "a.ts")

    def test_comments_and_blank_lines_are_dropped(self, root_path):
        matcher = ExclusionMatcher(root_path, ["# comment", "", "  *.tmp  "])
        assert matcher.patterns == ["*.tmp"]

    def test_compiling_patterns_emits_no_deprecation(self, root_path):
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            matcher = ExclusionMatcher(root_path, ["*.log", "build/"])
        assert matcher.matches(root_path / "debug.log")


class TestExclusionList:
    """Test loading and modifying .gitignore."""

    @pytest.fixture
    def exclusions(self, temp_dir):
        return ExclusionList(temp_dir)

    def test_missing_file_returns_defaults(self, exclusions):
        assert exclusions.load() == ["**/.DS_Store"]

    def test_load_patterns_in_order(self, exclusions):
        exclusions.file_path.write_text("# generated\n*.log\n\nbuild/\n")
        assert exclusions.load() == ["*.log", "build/"]

    def test_undecodable_file_falls_back_to_defaults(self, exclusions):
        exclusions.file_path.write_bytes(b"\xff\xfe\xfa\x00")
        assert exclusions.load() == list(DEFAULT_PATTERNS)

    def test_modify_writes_changes(self, exclusions):
        result = exclusions.modify(lambda patterns: patterns.append("*.log"))
        assert result == ["**/.DS_Store", "*.log"]
        assert exclusions.file_path.read_text() == "**/.DS_Store\n*.log\n"

    def test_modify_without_change_does_not_write(self, exclusions):
        exclusions.file_path.write_text("*.log\n")
        with patch.object(ExclusionList, "store") as mock_store:
            exclusions.modify(lambda patterns: None)
        mock_store.assert_not_called()

    def test_modify_creates_missing_file(self, exclusions):
        exclusions.modify(lambda patterns: None)
        assert exclusions.file_path.read_text() == "**/.DS_Store\n"

    def test_matches_uses_current_file(self, exclusions, temp_dir):
        exclusions.file_path.write_text("secret.ts\n")
        assert exclusions.matches(temp_dir / "draft" / "secret.ts")
        assert not exclusions.matches(temp_dir / "draft" / "a.ts")
