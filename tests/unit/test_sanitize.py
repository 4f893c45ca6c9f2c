"""Tests for escaping helpers."""

import pytest

from boostsec.ado_test_reporter.sanitize import escape_wiql, escape_xml, sanitize_for_csv


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("=SUM(A1:A2)", "'=SUM(A1:A2)"),
        ("+1", "'+1"),
        ("@cmd", "'@cmd"),
        ("-1+2", "'-1+2"),
        ("  =HYPERLINK()", "'  =HYPERLINK()"),
        ("- bullet item", "- bullet item"),
        ("User logs in", "User logs in"),
        ("", ""),
    ],
)
def test_sanitize_for_csv(value: str, expected: str) -> None:
    """Formula prefixes are neutralized and dash bullets pass through."""
    assert sanitize_for_csv(value) == expected


def test_escape_xml() -> None:
    """All five XML special characters are escaped."""
    assert escape_xml("""<a href="x">Tom & 'Jerry'</a>""") == (
        "&lt;a href=&quot;x&quot;&gt;Tom &amp; &apos;Jerry&apos;&lt;/a&gt;"
    )


def test_escape_xml_escapes_ampersand_once() -> None:
    """Existing entities are escaped again, not preserved."""
    assert escape_xml("&amp;") == "&amp;amp;"


def test_escape_wiql_doubles_single_quotes() -> None:
    """Single quotes inside WIQL literals are doubled."""
    assert escape_wiql("O'Brien's test") == "O''Brien''s test"
