"""Tests for the JUnit XML parser."""

import logging
from pathlib import Path

import pytest

from boostsec.ado_test_reporter.parsers.junit import (
    MAX_ERROR_LENGTH,
    TRUNCATION_MARKER,
    JUnitParser,
    truncate_error,
)
from boostsec.ado_test_reporter.redaction import REDACTED

REPORT = """\
<?xml version="1.0" encoding="UTF-8"?>
<testsuites>
  <testsuite name="auth">
    <testcase name="Login_TC1000" time="1.5"/>
    <testcase name="Logout_TC1001" time="abc">
      <failure message="expected 200">Traceback password=hunter2</failure>
      <system-out>saved [[ATTACHMENT|shots/logout.png]] and [[ATTACHMENT|shots/logout.png]]</system-out>
      <system-err>[[ATTACHMENT|logs/logout.txt]]</system-err>
    </testcase>
  </testsuite>
  <testsuite name="misc">
    <testcase name="Crash" time="-1"><error message="boom"/></testcase>
    <testcase name="Pending"><skipped/></testcase>
    <testcase name="Forever" time="inf"/>
  </testsuite>
</testsuites>
"""


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "results.xml"
    path.write_text(content)
    return path


def test_parse_testsuites(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    """All suites are read in order and skipped tests are left out."""
    with caplog.at_level(logging.INFO):
        results = JUnitParser().parse(_write(tmp_path, REPORT))

    assert [r.name for r in results] == [
        "Login_TC1000",
        "Logout_TC1001",
        "Crash",
        "Forever",
    ]
    assert "Skipping test not executed: Pending" in caplog.text

    login, logout, crash, forever = results
    assert login.outcome == "Passed"
    assert login.duration_ms == 1500.0
    assert login.error_message is None

    assert logout.outcome == "Failed"
    assert logout.duration_ms == 0.0
    assert logout.error_message == f"expected 200\nTraceback password={REDACTED}"
    assert logout.attachments == ["shots/logout.png", "logs/logout.txt"]

    assert crash.outcome == "Failed"
    assert crash.error_message == "boom"
    assert crash.duration_ms == 0.0

    assert forever.duration_ms == 0.0


def test_parse_bare_testsuite(tmp_path: Path) -> None:
    """A lone <testsuite> root is accepted."""
    path = _write(
        tmp_path,
        '<testsuite name="s"><testcase name="only" time="0.25"/></testsuite>',
    )

    results = JUnitParser().parse(path)

    assert len(results) == 1
    assert results[0].duration_ms == 250.0


def test_parse_unexpected_root(tmp_path: Path) -> None:
    """An unknown root element yields no results."""
    assert JUnitParser().parse(_write(tmp_path, "<report/>")) == []


def test_parse_invalid_xml(tmp_path: Path) -> None:
    """Malformed XML is rejected."""
    with pytest.raises(ValueError, match="Invalid JUnit XML"):
        JUnitParser().parse(_write(tmp_path, "<testsuite><testcase"))


def test_parse_missing_file(tmp_path: Path) -> None:
    """A missing file is rejected before parsing."""
    with pytest.raises(ValueError, match="JUnit file not found"):
        JUnitParser().parse(tmp_path / "missing.xml")


def test_parse_identical_message_and_body(tmp_path: Path) -> None:
    """A body repeating the message is not duplicated."""
    path = _write(
        tmp_path,
        '<testsuite><testcase name="t"><failure message="same">same</failure>'
        "</testcase></testsuite>",
    )

    assert JUnitParser().parse(path)[0].error_message == "same"


def test_truncate_error() -> None:
    """Long messages are capped with a marker."""
    assert truncate_error("short") == "short"

    truncated = truncate_error("x" * (MAX_ERROR_LENGTH + 100))

    assert len(truncated) == MAX_ERROR_LENGTH
    assert truncated.endswith(TRUNCATION_MARKER)
