"""Tests for loading settings from the environment."""

import os
import re
from pathlib import Path

import pytest

from boostsec.ado_test_reporter.config import (
    ENV_FILE_VARIABLE,
    load_dotenv_file,
    load_environment,
    parse_boolean,
    resolve_generated_name,
)
from boostsec.ado_test_reporter.errors import ConfigError

LOCAL_ENV = {
    "ADO_TOKEN": "local-token",
    "ADO_ORG_URL": "https://dev.azure.com/local",
    "ADO_PROJECT": "LocalProject",
}


@pytest.mark.parametrize(
    ("value", "default", "expected"),
    [
        ("true", False, True),
        ("TRUE", False, True),
        (" True ", False, True),
        ("false", True, False),
        ("yes", True, False),
        ("1", True, False),
        (None, True, True),
        ("", True, True),
        ("  ", False, False),
    ],
)
def test_parse_boolean(value: str | None, default: bool, expected: bool) -> None:
    """Only 'true' in any case is true; unset values use the default."""
    assert parse_boolean(value, default) is expected


def test_load_environment_local_defaults() -> None:
    """Local variables are used and the policy keeps its defaults."""
    env = load_environment(LOCAL_ENV)

    assert env.azure.token == "local-token"
    assert env.azure.org_url == "https://dev.azure.com/local"
    assert env.azure.project == "LocalProject"
    assert env.build_id == 0
    assert env.build_number == "Local Run"
    assert env.plan_name is None
    assert env.policy.create_failure_tasks is True
    assert env.policy.auto_close_on_pass is False
    assert env.policy.fallback_to_name_search is False
    assert env.policy.auto_create_test_cases is True
    assert env.policy.defect_type == "Task"
    assert env.policy.closed_state == "Closed"
    assert env.policy.html_fields == []


def test_load_environment_pipeline_wins() -> None:
    """Pipeline variables take precedence over their local equivalents."""
    env = load_environment(
        {
            **LOCAL_ENV,
            "SYSTEM_ACCESSTOKEN": "pipeline-token",
            "SYSTEM_TEAMFOUNDATIONCOLLECTIONURI": "https://dev.azure.com/pipe/",
            "SYSTEM_TEAMPROJECT": "PipeProject",
            "BUILD_BUILDID": "42",
            "BUILD_BUILDNUMBER": "20240101.3",
            "ADO_BUILD_NUMBER": "ignored",
        }
    )

    assert env.azure.token == "pipeline-token"
    assert env.azure.org_url == "https://dev.azure.com/pipe/"
    assert env.azure.project == "PipeProject"
    assert env.build_id == 42
    assert env.build_number == "20240101.3"


def test_load_environment_policy_overrides() -> None:
    """Policy toggles and lists are read from their variables."""
    env = load_environment(
        {
            **LOCAL_ENV,
            "ADO_CREATE_FAILURE_TASKS": "false",
            "ADO_AUTO_CLOSE_ON_PASS": "true",
            "ADO_FALLBACK_TO_NAME_SEARCH": "TRUE",
            "ADO_AUTO_CREATE_TEST_CASES": "false",
            "ADO_AUTO_CREATE_PLAN": "false",
            "ADO_AUTO_CREATE_SUITE": "false",
            "ADO_DEFECT_TYPE": "Bug",
            "ADO_CLOSED_STATE": "Done",
            "ADO_HTML_FIELDS": "Custom.Notes, Custom.Extra,,",
            "ADO_PLAN_NAME": "Regression",
            "ADO_SUITE_NAME": "Smoke",
        }
    )

    assert env.policy.create_failure_tasks is False
    assert env.policy.auto_close_on_pass is True
    assert env.policy.fallback_to_name_search is True
    assert env.policy.auto_create_test_cases is False
    assert env.policy.auto_create_plan is False
    assert env.policy.auto_create_suite is False
    assert env.policy.defect_type == "Bug"
    assert env.policy.closed_state == "Done"
    assert env.policy.html_fields == ["Custom.Notes", "Custom.Extra"]
    assert env.plan_name == "Regression"
    assert env.suite_name == "Smoke"


def test_create_failure_tasks_pipeline_variable_wins() -> None:
    """CREATE_FAILURE_TASKS is read before its ADO_ form."""
    env = load_environment(
        {
            **LOCAL_ENV,
            "CREATE_FAILURE_TASKS": "false",
            "ADO_CREATE_FAILURE_TASKS": "true",
        }
    )

    assert env.policy.create_failure_tasks is False


@pytest.mark.parametrize("missing", ["ADO_TOKEN", "ADO_ORG_URL", "ADO_PROJECT"])
def test_load_environment_missing_required(missing: str) -> None:
    """Each required value is enforced."""
    environ = {key: value for key, value in LOCAL_ENV.items() if key != missing}

    with pytest.raises(ConfigError, match="Missing required environment variables"):
        load_environment(environ)


def test_load_environment_invalid_build_id() -> None:
    """A non-numeric build id is rejected."""
    with pytest.raises(ConfigError, match="BUILD_BUILDID must be a number"):
        load_environment({**LOCAL_ENV, "BUILD_BUILDID": "abc"})


def test_load_dotenv_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """The .env file fills gaps without overriding the environment."""
    env_file = tmp_path / "local.env"
    env_file.write_text("ADO_PROJECT=FromFile\nADO_ORG_URL=https://file\n")
    monkeypatch.setenv(ENV_FILE_VARIABLE, str(env_file))
    monkeypatch.setenv("ADO_ORG_URL", "https://env")
    monkeypatch.setenv("ADO_PROJECT", "placeholder")
    monkeypatch.delenv("ADO_PROJECT")

    load_dotenv_file()

    assert os.environ["ADO_PROJECT"] == "FromFile"
    assert os.environ["ADO_ORG_URL"] == "https://env"


def test_load_dotenv_file_missing(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A missing .env file is ignored."""
    monkeypatch.setenv(ENV_FILE_VARIABLE, str(tmp_path / "absent.env"))

    load_dotenv_file()


def test_resolve_generated_name() -> None:
    """auto-generate expands with the build number or a timestamp."""
    assert resolve_generated_name("My Plan", "AutoPlan", "b1") == "My Plan"
    assert resolve_generated_name("auto-generate", "AutoPlan", "b1") == "AutoPlan-b1"
    assert resolve_generated_name("Auto-Generate", "AutoSuite", "7") == "AutoSuite-7"

    generated = resolve_generated_name("auto-generate", "AutoPlan", None)

    assert re.fullmatch(
        r"AutoPlan-\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{6}Z", generated
    )
