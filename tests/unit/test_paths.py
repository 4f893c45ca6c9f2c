"""Tests for file system guards."""

import logging
from pathlib import Path

import pytest

from boostsec.ado_test_reporter import paths
from boostsec.ado_test_reporter.paths import (
    check_input_file,
    is_safe_path,
    read_attachment,
)


def test_is_safe_path_inside_root(tmp_path: Path) -> None:
    """Paths below the root are accepted."""
    (tmp_path / "sub").mkdir()

    assert is_safe_path(tmp_path / "sub" / "file.txt", tmp_path)
    assert is_safe_path(tmp_path, tmp_path)


def test_is_safe_path_rejects_traversal(tmp_path: Path) -> None:
    """Dot-dot segments escaping the root are rejected."""
    root = tmp_path / "root"
    root.mkdir()

    assert not is_safe_path(root / ".." / "secret.txt", root)


def test_is_safe_path_rejects_sibling_prefix(tmp_path: Path) -> None:
    """A sibling directory sharing the root's prefix is outside the root."""
    root = tmp_path / "data"
    root.mkdir()
    sibling = tmp_path / "data-other"
    sibling.mkdir()

    assert not is_safe_path(sibling / "file.txt", root)


def test_is_safe_path_rejects_symlink_escape(tmp_path: Path) -> None:
    """A symlink inside the root pointing outside is rejected."""
    root = tmp_path / "root"
    root.mkdir()
    outside = tmp_path / "outside.txt"
    outside.write_text("secret")
    link = root / "link.txt"
    link.symlink_to(outside)

    assert not is_safe_path(link, root)


def test_is_safe_path_defaults_to_cwd(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Without a root, the current directory is the boundary."""
    monkeypatch.chdir(tmp_path)

    assert is_safe_path("report.png")
    assert not is_safe_path("/etc/passwd")


def test_check_input_file_missing(tmp_path: Path) -> None:
    """Missing files are rejected."""
    with pytest.raises(ValueError, match="file not found"):
        check_input_file(tmp_path / "missing.xml", "JUnit")


def test_check_input_file_directory(tmp_path: Path) -> None:
    """Directories are rejected."""
    with pytest.raises(ValueError, match="is not a file"):
        check_input_file(tmp_path, "JUnit")


def test_check_input_file_too_large(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Files above the size ceiling are rejected."""
    monkeypatch.setattr(paths, "MAX_INPUT_FILE_SIZE", 10)
    big = tmp_path / "big.xml"
    big.write_text("x" * 11)

    with pytest.raises(ValueError, match="too large"):
        check_input_file(big, "JUnit")


def test_read_attachment_returns_content(tmp_path: Path) -> None:
    """Files that pass the policy are read."""
    file = tmp_path / "screenshot.png"
    file.write_bytes(b"png")

    assert read_attachment(file, tmp_path) == b"png"


def test_read_attachment_outside_root_logs_security_risk(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """Attachments outside the root are skipped with a warning."""
    root = tmp_path / "root"
    root.mkdir()
    outside = tmp_path / "outside.txt"
    outside.write_text("secret")

    with caplog.at_level(logging.WARNING):
        content = read_attachment(root / ".." / "outside.txt", root)

    assert content is None
    assert "Security Risk" in caplog.text


def test_read_attachment_skips_missing_directory_and_large(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Missing files, directories and oversized files are skipped."""
    monkeypatch.setattr(paths, "MAX_ATTACHMENT_SIZE", 4)
    large = tmp_path / "large.log"
    large.write_text("12345")
    (tmp_path / "dir").mkdir()

    assert read_attachment(tmp_path / "missing.log", tmp_path) is None
    assert read_attachment(tmp_path / "dir", tmp_path) is None
    assert read_attachment(large, tmp_path) is None
