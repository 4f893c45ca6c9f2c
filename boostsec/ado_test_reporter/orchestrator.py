"""Publish one JUnit result file to Azure DevOps."""

import logging
import re
from pathlib import Path

from boostsec.ado_test_reporter.client.base import AzureDevOpsBackend
from boostsec.ado_test_reporter.config import resolve_generated_name
from boostsec.ado_test_reporter.errors import TestCaseNotFoundError
from boostsec.ado_test_reporter.models.config import RunOptions, SyncPolicy
from boostsec.ado_test_reporter.models.test_case import ParsedTestCase, ResultRecord
from boostsec.ado_test_reporter.models.test_plan import PublishSummary
from boostsec.ado_test_reporter.models.work_item import FailureInfo
from boostsec.ado_test_reporter.parsers.junit import JUnitParser
from boostsec.ado_test_reporter.paths import is_safe_path
from boostsec.ado_test_reporter.services.failure_task_service import (
    FailureTaskService,
)
from boostsec.ado_test_reporter.services.test_case_service import TestCaseService
from boostsec.ado_test_reporter.services.test_plan_service import TestPlanService

logger = logging.getLogger(__name__)

TC_ID_PATTERN = re.compile(r"TC(\d+)", re.IGNORECASE)
TEST_NAME_PLACEHOLDER = "{testName}"
_UNSAFE_FILE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def extract_test_case_id(test_name: str) -> str | None:
    """Test case id embedded in a test name, e.g. ``UserLogin_TC1056``."""
    match = TC_ID_PATTERN.search(test_name)
    return match.group(1) if match else None


def _relative_pattern(pattern: Path, root: Path) -> str | None:
    for base in (root.absolute(), root.resolve()):
        try:
            return str(pattern.relative_to(base))
        except ValueError:
            continue
    return None


def find_artifacts(
    artifacts_dir: str | None, pattern: str | None, test_name: str
) -> list[str]:
    """Files in ``artifacts_dir`` matching ``pattern`` for one test.

    ``{testName}`` in the pattern is replaced by a file-safe form of the test
    name. An absolute pattern must point inside the directory. Matches
    resolving outside the directory are dropped.
    """
    if not artifacts_dir or not pattern:
        return []

    root = Path(artifacts_dir)
    if not root.is_dir():
        logger.warning(f"Artifacts directory not found: {artifacts_dir}")
        return []

    safe_name = _UNSAFE_FILE_CHARS.sub("_", test_name)
    glob_pattern = pattern.replace(TEST_NAME_PLACEHOLDER, safe_name)
    if Path(glob_pattern).is_absolute():
        relative = _relative_pattern(Path(glob_pattern), root)
        if relative is None:
            logger.warning(f"Artifact pattern '{pattern}' is outside {artifacts_dir}")
            return []
        glob_pattern = relative
    try:
        matches = sorted(root.glob(glob_pattern))
    except (ValueError, NotImplementedError) as e:
        logger.warning(f"Invalid artifact pattern '{pattern}': {e}")
        return []

    found = []
    for match in matches:
        if not is_safe_path(match, root):
            logger.warning(f"Security Risk: artifact outside {artifacts_dir}: {match}")
            continue
        if match.is_file():
            found.append(str(match))
    return found


class ResultPublisher:
    """Resolves, plans and publishes the results of one JUnit file."""

    def __init__(
        self,
        test_case_service: TestCaseService,
        test_plan_service: TestPlanService,
        failure_task_service: FailureTaskService,
        parser: JUnitParser | None = None,
    ) -> None:
        """Initialize the publisher with its collaborators."""
        self.test_case_service = test_case_service
        self.test_plan_service = test_plan_service
        self.failure_task_service = failure_task_service
        self.parser = parser or JUnitParser()

    @classmethod
    def from_backend(
        cls, backend: AzureDevOpsBackend, project: str, policy: SyncPolicy
    ) -> "ResultPublisher":
        """Wire the services for one run against a backend."""
        return cls(
            TestCaseService(
                backend,
                project,
                fallback_to_name_search=policy.fallback_to_name_search,
                auto_create=policy.auto_create_test_cases,
            ),
            TestPlanService(
                backend,
                auto_create_plan=policy.auto_create_plan,
                auto_create_suite=policy.auto_create_suite,
            ),
            FailureTaskService(
                backend,
                project,
                defect_type=policy.defect_type,
                closed_state=policy.closed_state,
            ),
        )

    async def run(self, options: RunOptions, junit_file: str | Path) -> PublishSummary:
        """Publish a JUnit file.

        Args:
            options: Plan, suite, build and behaviour options
            junit_file: JUnit XML result file

        Returns:
            Counts of processed, published and skipped results, and the run

        Raises:
            ValueError: If the result file is rejected
            PlanNotFoundError: If the plan must exist and doesn't
            SuiteNotFoundError: If the suite must exist and doesn't
            PublishError: If the backend breaks the publishing protocol

        """
        plan_name = resolve_generated_name(
            options.plan_name, "AutoPlan", options.build_number
        )
        suite_name = resolve_generated_name(
            options.suite_name, "AutoSuite", options.build_number
        )

        logger.info(f"Ensuring test plan '{plan_name}'...")
        plan = await self.test_plan_service.ensure_plan(plan_name)
        logger.info(f"Ensuring test suite '{suite_name}'...")
        suite = await self.test_plan_service.ensure_suite(
            plan.plan_id, plan.root_suite_id, suite_name
        )

        parsed_cases = self.parser.parse(junit_file)
        summary = PublishSummary()
        if not parsed_cases:
            logger.info("No test cases found in the JUnit file; exiting")
            return summary
        logger.info(f"Parsed {len(parsed_cases)} test case(s) from JUnit")

        records: list[ResultRecord] = []
        failures: list[tuple[ResultRecord, ParsedTestCase]] = []
        passed_ids: list[int] = []
        for case in parsed_cases:
            try:
                test_case = await self.test_case_service.resolve(
                    case.name, extract_test_case_id(case.name)
                )
            except TestCaseNotFoundError as e:
                logger.warning(f"Skipping result for {case.name}: {e}")
                summary.skipped += 1
                continue

            record = ResultRecord(
                test_case=test_case,
                title=case.name,
                duration_ms=case.duration_ms,
                outcome=case.outcome,
                error_message=case.error_message,
                local_attachments=case.attachments
                + find_artifacts(
                    options.artifacts_dir, options.artifact_pattern, case.name
                ),
            )
            records.append(record)
            if case.outcome == "Failed":
                failures.append((record, case))
            else:
                passed_ids.append(test_case.id)

        summary.processed = len(records)
        if not records:
            logger.warning("No results could be resolved to test cases")
            return summary

        await self.test_plan_service.link_test_cases_to_suite(
            plan.plan_id, suite.suite_id, [record.test_case.id for record in records]
        )
        point_ids = await self.test_plan_service.map_points_to_results(
            plan.plan_id, suite.suite_id, records
        )
        logger.info(f"Mapped {len(point_ids)} test point(s)")

        publishable = [record for record in records if record.test_point_id is not None]
        summary.unplanned = len(records) - len(publishable)
        if not publishable:
            logger.warning(
                "No results had mapped test points; run will not be published"
            )
            return summary

        logger.info(
            f"Publishable results: {len(publishable)} (of {len(records)} processed)"
        )
        run = await self.test_plan_service.create_run_and_publish(
            plan.plan_id,
            suite_name,
            options.build_id,
            options.build_number,
            publishable,
            point_ids,
            junit_file if options.attach_results else None,
        )
        summary.run = run
        summary.published = len(publishable)
        summary.passed = sum(1 for record in publishable if record.outcome == "Passed")
        summary.failed = len(publishable) - summary.passed

        if options.create_failure_tasks:
            for record, case in failures:
                await self.failure_task_service.create_task_for_failure(
                    FailureInfo(
                        test_case_id=str(record.test_case.id),
                        test_name=case.name,
                        error_message=case.error_message,
                        build_number=options.build_number,
                        run_url=run.run_url,
                        run_id=run.run_id,
                        attachments=record.local_attachments,
                    )
                )
        else:
            logger.info("Failure task creation is disabled")

        if options.auto_close_on_pass:
            logger.info(f"Resolving failure tasks for {len(passed_ids)} passed test(s)")
            for test_case_id in passed_ids:
                await self.failure_task_service.resolve_task_for_success(
                    test_case_id, options.build_number
                )

        return summary
