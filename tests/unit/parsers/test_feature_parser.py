"""Tests for the Gherkin feature parser."""

from pathlib import Path

import pytest

pytest.importorskip("gherkin")

from boostsec.ado_test_reporter.parsers import feature  # noqa: E402
from boostsec.ado_test_reporter.parsers.feature import GherkinFeatureParser  # noqa: E402

LOGIN_FEATURE = """\
@web
Feature: Login
  As a user I want to sign in

  Background:
    Given the app is running

  @TC_1000 @smoke
  Scenario: Successful login
    When they log in
    Then the dashboard is shown

  Scenario: Untracked
    When nothing happens

  Rule: Lockout

    Background:
      Given a locked account

    @TC_1001 @web
    Scenario: Locked login
      When they log in
      Then an error is shown
"""


def test_parse_text_merges_backgrounds_and_tags() -> None:
    """Scenarios inherit feature and rule context."""
    scenarios = GherkinFeatureParser().parse_text(LOGIN_FEATURE)

    assert [s.name for s in scenarios] == [
        "Successful login",
        "Untracked",
        "Locked login",
    ]

    login, untracked, locked = scenarios
    assert login.tc_id == 1000
    assert login.tags == ["@web", "@TC_1000", "@smoke"]
    assert [(s.keyword, s.text) for s in login.steps] == [
        ("Given", "the app is running"),
        ("When", "they log in"),
        ("Then", "the dashboard is shown"),
    ]
    assert login.feature_name == "Login"
    assert login.feature_description == "As a user I want to sign in"

    assert untracked.tc_id is None

    assert locked.tc_id == 1001
    assert locked.tags == ["@web", "@TC_1001"]
    assert [s.text for s in locked.steps] == [
        "the app is running",
        "a locked account",
        "they log in",
        "an error is shown",
    ]


def test_parse_text_requires_exact_tc_tag() -> None:
    """Only tags of the form @TC_<digits> set the test case id."""
    content = (
        "Feature: F\n"
        "  @TC_12abc @TC_\n"
        "  Scenario: S\n"
        "    Given a step\n"
    )

    assert GherkinFeatureParser().parse_text(content)[0].tc_id is None


def test_parse_text_invalid_gherkin() -> None:
    """Syntax errors are reported with their source."""
    with pytest.raises(ValueError, match="Invalid Gherkin in broken.feature"):
        GherkinFeatureParser().parse_text("This is not gherkin\n", "broken.feature")


def test_parse_text_without_feature() -> None:
    """A document with no feature has no scenarios."""
    assert GherkinFeatureParser().parse_text("# just a comment\n") == []


def test_parse_glob(tmp_path: Path) -> None:
    """Nested feature files are found with a recursive pattern."""
    nested = tmp_path / "features" / "auth"
    nested.mkdir(parents=True)
    (tmp_path / "features" / "a.feature").write_text(
        "Feature: A\n  Scenario: One\n    Given x\n"
    )
    (nested / "b.feature").write_text("Feature: B\n  Scenario: Two\n    Given y\n")

    scenarios = GherkinFeatureParser().parse(f"{tmp_path}/features/**/*.feature")

    assert sorted(s.name for s in scenarios) == ["One", "Two"]


def test_parse_glob_no_match(tmp_path: Path) -> None:
    """No matching files yields no scenarios."""
    assert GherkinFeatureParser().parse(f"{tmp_path}/**/*.feature") == []


def test_parse_rejects_large_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Files over the size ceiling are rejected."""
    monkeypatch.setattr(feature, "MAX_INPUT_FILE_SIZE", 10)
    (tmp_path / "big.feature").write_text("Feature: Big\n  Scenario: S\n")

    with pytest.raises(ValueError, match="Feature file is too large"):
        GherkinFeatureParser().parse(f"{tmp_path}/*.feature")
