"""CLI entry point for the Azure DevOps test reporter."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import NoReturn

import typer

from boostsec.ado_test_reporter.client.azure import AzureDevOpsClient
from boostsec.ado_test_reporter.config import load_environment
from boostsec.ado_test_reporter.errors import ConfigError
from boostsec.ado_test_reporter.models.config import AppEnv, RunOptions
from boostsec.ado_test_reporter.orchestrator import ResultPublisher
from boostsec.ado_test_reporter.redaction import RedactingFormatter, redact
from boostsec.ado_test_reporter.services.ado_sync_service import AdoSyncService
from boostsec.ado_test_reporter.services.excel_import_service import (
    ExcelImportService,
)
from boostsec.ado_test_reporter.services.test_case_service import TestCaseService
from boostsec.ado_test_reporter.services.test_plan_service import TestPlanService

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging() -> None:
    """Send INFO logs to stderr with secrets redacted."""
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    for handler in logging.getLogger().handlers:
        handler.setFormatter(RedactingFormatter(LOG_FORMAT))


configure_logging()
logger = logging.getLogger(__name__)

app = typer.Typer()

DEFAULT_EXCEL_PLAN = "Excel Import Plan"
DEFAULT_EXCEL_SUITE = "Imported Suite"


def _fail(message: str, error: BaseException) -> NoReturn:
    logger.error(redact(f"{message}: {error}"))
    typer.echo(redact(f"Error: {error}"), err=True)
    raise typer.Exit(code=1)


def _load_env() -> AppEnv:
    try:
        return load_environment()
    except ConfigError as e:
        _fail("Invalid configuration", e)


def _services(env: AppEnv) -> tuple[TestCaseService, TestPlanService]:
    backend = AzureDevOpsClient(env.azure)
    test_case_service = TestCaseService(
        backend,
        env.azure.project,
        fallback_to_name_search=env.policy.fallback_to_name_search,
        auto_create=env.policy.auto_create_test_cases,
    )
    test_plan_service = TestPlanService(
        backend,
        auto_create_plan=env.policy.auto_create_plan,
        auto_create_suite=env.policy.auto_create_suite,
    )
    return test_case_service, test_plan_service


@app.command()
def publish(
    junit_file: Path = typer.Option(..., help="JUnit XML result file"),  # noqa: B008
    plan_name: str = typer.Option(
        ..., help="Test plan name, or 'auto-generate' for AutoPlan-<build>"
    ),
    suite_name: str = typer.Option(
        ..., help="Test suite name, or 'auto-generate' for AutoSuite-<build>"
    ),
    attach_results: bool = typer.Option(
        False, help="Attach the JUnit file to the test run"
    ),
    artifacts_dir: str | None = typer.Option(
        None, help="Directory searched for per-test artifacts"
    ),
    artifact_pattern: str | None = typer.Option(
        None, help="Artifact glob, {testName} is replaced by the test name"
    ),
) -> None:
    """Publish JUnit results as an Azure DevOps test run."""
    logger.info("=" * 80)
    logger.info("Azure DevOps Test Reporter - Publishing results")
    logger.info("=" * 80)
    logger.info(f"JUnit file: {junit_file}")
    logger.info(f"Plan: {plan_name}")
    logger.info(f"Suite: {suite_name}")

    env = _load_env()
    options = RunOptions(
        plan_name=plan_name,
        suite_name=suite_name,
        build_id=env.build_id,
        build_number=env.build_number,
        attach_results=attach_results,
        create_failure_tasks=env.policy.create_failure_tasks,
        auto_close_on_pass=env.policy.auto_close_on_pass,
        artifacts_dir=artifacts_dir,
        artifact_pattern=artifact_pattern,
    )
    publisher = ResultPublisher.from_backend(
        AzureDevOpsClient(env.azure), env.azure.project, env.policy
    )

    try:
        summary = asyncio.run(publisher.run(options, junit_file))
    except Exception as e:
        _fail("Publishing failed", e)

    if summary.run:
        logger.info(f"Test run: {summary.run.run_url}")
    logger.info(
        f"Published {summary.published} of {summary.processed} result(s), "
        f"{summary.unplanned} unplanned, {summary.skipped} skipped"
    )
    typer.echo(summary.model_dump_json(indent=2))


@app.command("sync-features")
def sync_features(
    pattern: str = typer.Option(
        "features/**/*.feature", help="Glob pattern for feature files"
    ),
) -> None:
    """Push steps, tags and descriptions from @TC_<id> scenarios."""
    # gherkin-official is an optional extra
    from boostsec.ado_test_reporter.parsers.feature import GherkinFeatureParser

    env = _load_env()
    test_case_service, _ = _services(env)
    sync_service = AdoSyncService(test_case_service)

    try:
        scenarios = GherkinFeatureParser().parse(pattern)
        count = asyncio.run(sync_service.sync_scenarios(scenarios))
    except Exception as e:
        _fail("Feature sync failed", e)

    logger.info(f"Processed {count} scenario(s)")


@app.command("import-excel")
def import_excel(
    file: Path = typer.Option(..., help="Spreadsheet with test cases"),  # noqa: B008
    mapping: Path = typer.Option(..., help="YAML or JSON field-to-column mapping"),  # noqa: B008
    plan_name: str | None = typer.Option(
        None, help="Target test plan (default: ADO_PLAN_NAME)"
    ),
    suite_name: str | None = typer.Option(
        None, help="Target test suite (default: ADO_SUITE_NAME)"
    ),
) -> None:
    """Create or update test cases from a spreadsheet."""
    env = _load_env()
    test_case_service, test_plan_service = _services(env)
    import_service = ExcelImportService(
        test_case_service,
        test_plan_service,
        additional_html_fields=env.policy.html_fields,
    )

    target_plan = plan_name or env.plan_name or DEFAULT_EXCEL_PLAN
    target_suite = suite_name or env.suite_name or DEFAULT_EXCEL_SUITE

    try:
        ids = asyncio.run(
            import_service.import_test_cases(file, mapping, target_plan, target_suite)
        )
    except Exception as e:
        _fail("Excel import failed", e)

    logger.info(f"Imported {len(ids)} test case(s)")


if __name__ == "__main__":  # pragma: no cover
    app()
