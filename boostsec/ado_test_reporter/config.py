"""Load reporter settings from the environment and an optional .env file."""

import logging
import os
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv

from boostsec.ado_test_reporter.errors import ConfigError
from boostsec.ado_test_reporter.models.config import (
    AppEnv,
    AzureDevOpsConfig,
    SyncPolicy,
)

logger = logging.getLogger(__name__)

ENV_FILE_VARIABLE = "AZURE_TEST_SYNCER_ENV"
AUTO_GENERATE = "auto-generate"
DEFAULT_BUILD_NUMBER = "Local Run"


def parse_boolean(value: str | None, default: bool) -> bool:
    """Interpret an environment flag; only ``true`` (any case) is true."""
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() == "true"


def _first(environ: Mapping[str, str], *names: str) -> str | None:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return None


def _parse_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def load_dotenv_file() -> None:
    """Load the local .env file, if any, without overriding the environment."""
    env_path = Path(os.environ.get(ENV_FILE_VARIABLE) or ".env").resolve()
    if env_path.is_file():
        load_dotenv(env_path, override=False)
        logger.info(f"Loaded environment from {env_path}")


def load_environment(environ: Mapping[str, str] | None = None) -> AppEnv:
    """Build the application settings.

    Pipeline variables (``SYSTEM_*``, ``BUILD_*``) take precedence over their
    ``ADO_*`` equivalents for local runs.

    Args:
        environ: Variables to read (default: ``os.environ`` after loading .env)

    Returns:
        Connection settings, sync policy and build identity

    Raises:
        ConfigError: If the token, organization URL or project is missing, or
            the build id is not a number

    """
    if environ is None:
        load_dotenv_file()
        environ = os.environ

    token = _first(environ, "SYSTEM_ACCESSTOKEN", "ADO_TOKEN")
    org_url = _first(environ, "SYSTEM_TEAMFOUNDATIONCOLLECTIONURI", "ADO_ORG_URL")
    project = _first(environ, "SYSTEM_TEAMPROJECT", "ADO_PROJECT")
    if not token or not org_url or not project:
        raise ConfigError(
            "Missing required environment variables (token/orgUrl/project). "
            "Provide SYSTEM_* values in pipeline or set ADO_TOKEN, ADO_ORG_URL, "
            "ADO_PROJECT locally."
        )

    build_id_text = environ.get("BUILD_BUILDID") or "0"
    if not build_id_text.strip().isdigit():
        raise ConfigError(f"BUILD_BUILDID must be a number, got {build_id_text!r}")

    policy = SyncPolicy(
        create_failure_tasks=parse_boolean(
            _first(environ, "CREATE_FAILURE_TASKS", "ADO_CREATE_FAILURE_TASKS"), True
        ),
        auto_close_on_pass=parse_boolean(environ.get("ADO_AUTO_CLOSE_ON_PASS"), False),
        fallback_to_name_search=parse_boolean(
            environ.get("ADO_FALLBACK_TO_NAME_SEARCH"), False
        ),
        auto_create_test_cases=parse_boolean(
            environ.get("ADO_AUTO_CREATE_TEST_CASES"), True
        ),
        auto_create_plan=parse_boolean(environ.get("ADO_AUTO_CREATE_PLAN"), True),
        auto_create_suite=parse_boolean(environ.get("ADO_AUTO_CREATE_SUITE"), True),
        defect_type=environ.get("ADO_DEFECT_TYPE") or "Task",
        closed_state=environ.get("ADO_CLOSED_STATE") or "Closed",
        html_fields=_parse_list(environ.get("ADO_HTML_FIELDS")),
    )

    return AppEnv(
        azure=AzureDevOpsConfig(token=token, org_url=org_url, project=project),
        policy=policy,
        build_id=int(build_id_text.strip()),
        build_number=_first(environ, "BUILD_BUILDNUMBER", "ADO_BUILD_NUMBER")
        or DEFAULT_BUILD_NUMBER,
        plan_name=environ.get("ADO_PLAN_NAME") or None,
        suite_name=environ.get("ADO_SUITE_NAME") or None,
    )


def resolve_generated_name(name: str, prefix: str, build_number: str | None) -> str:
    """Expand ``auto-generate`` into ``<prefix>-<build>``.

    Without a build number a filesystem-safe UTC timestamp is used instead.
    """
    if name.strip().lower() != AUTO_GENERATE:
        return name
    if build_number:
        return f"{prefix}-{build_number}"
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
    return f"{prefix}-{stamp}"
