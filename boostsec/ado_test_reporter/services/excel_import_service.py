"""Import test cases from a spreadsheet into a plan and suite."""

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path

from boostsec.ado_test_reporter.errors import TestCaseNotFoundError
from boostsec.ado_test_reporter.mapping_loader import load_column_mapping
from boostsec.ado_test_reporter.parsers.excel import ExcelParser
from boostsec.ado_test_reporter.sanitize import escape_xml
from boostsec.ado_test_reporter.services.test_case_service import TestCaseService
from boostsec.ado_test_reporter.services.test_plan_service import TestPlanService

logger = logging.getLogger(__name__)

ID_FIELD = "System.Id"
TITLE_FIELD = "System.Title"

DEFAULT_HTML_FIELDS = frozenset(
    {
        "System.Description",
        "System.History",
        "Microsoft.VSTS.TCM.ReproSteps",
        "Microsoft.VSTS.TCM.Steps",
        "Microsoft.VSTS.Common.AcceptanceCriteria",
    }
)


def _parse_id(value: object) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float) and value.is_integer():
        return int(value) if value > 0 else None
    text = str(value).strip()
    return int(text) if text.isdigit() and int(text) > 0 else None


class ExcelImportService:
    """Creates or updates one test case per spreadsheet row."""

    def __init__(
        self,
        test_case_service: TestCaseService,
        test_plan_service: TestPlanService,
        parser: ExcelParser | None = None,
        additional_html_fields: Iterable[str] = (),
    ) -> None:
        """Initialize the import service."""
        self.test_case_service = test_case_service
        self.test_plan_service = test_plan_service
        self.parser = parser or ExcelParser()
        self.html_fields = set(DEFAULT_HTML_FIELDS) | set(additional_html_fields)

    async def import_test_cases(
        self,
        file_path: str | Path,
        mapping_path: str | Path,
        plan_name: str,
        suite_name: str,
    ) -> list[int]:
        """Import rows, then link every processed test case to the suite.

        Args:
            file_path: Spreadsheet to read
            mapping_path: YAML or JSON field-to-column mapping
            plan_name: Target plan
            suite_name: Target suite

        Returns:
            Ids of the processed test cases, in row order

        Raises:
            FileNotFoundError: If the mapping file doesn't exist
            ValueError: If the mapping or the spreadsheet is rejected

        """
        mapping = load_column_mapping(Path(mapping_path))
        logger.info(f"Loaded mapping from {mapping_path}")

        rows = self.parser.parse(file_path)
        logger.info(f"Parsed {len(rows)} rows from {file_path}")

        await self._load_backend_html_fields()

        test_case_ids: list[int] = []
        for row in rows:
            test_case_id = await self._resolve_row(row, mapping)
            if test_case_id is None:
                continue
            test_case_ids.append(test_case_id)

            fields = self._row_fields(row, mapping)
            if fields:
                await self.test_case_service.update_test_case(test_case_id, fields)

        if not test_case_ids:
            logger.warning("No test cases processed.")
            return []

        logger.info(f"Ensuring test plan: {plan_name}")
        plan = await self.test_plan_service.ensure_plan(plan_name)
        logger.info(f"Ensuring test suite: {suite_name}")
        suite = await self.test_plan_service.ensure_suite(
            plan.plan_id, plan.root_suite_id, suite_name
        )

        logger.info(f"Linking {len(test_case_ids)} test case(s) to suite")
        await self.test_plan_service.link_test_cases_to_suite(
            plan.plan_id, suite.suite_id, test_case_ids
        )
        logger.info("Import completed successfully")
        return test_case_ids

    async def _load_backend_html_fields(self) -> None:
        try:
            self.html_fields |= await self.test_case_service.get_html_fields()
        except Exception as e:
            logger.warning(f"Could not load HTML fields from Azure DevOps: {e}")

    async def _resolve_row(
        self, row: Mapping[str, object], mapping: Mapping[str, str]
    ) -> int | None:
        id_column = mapping.get(ID_FIELD)
        title_column = mapping.get(TITLE_FIELD)

        test_case_id = _parse_id(row.get(id_column)) if id_column else None
        if test_case_id is not None:
            existing = await self.test_case_service.get_test_case(test_case_id)
            if existing:
                logger.info(f"Found existing TC {test_case_id}. Updating...")
                return test_case_id
            logger.warning(f"TC {test_case_id} not found, resolving by title instead")

        title = row.get(title_column) if title_column else None
        if title is None or not str(title).strip():
            logger.warning(
                f"Row skipped: no ID and no Title found "
                f"(columns: {id_column}, {title_column})"
            )
            return None

        try:
            test_case = await self.test_case_service.resolve(str(title).strip())
        except TestCaseNotFoundError as e:
            logger.warning(f"Row skipped: {e}")
            return None
        return test_case.id

    def _row_fields(
        self, row: Mapping[str, object], mapping: Mapping[str, str]
    ) -> dict[str, object]:
        fields: dict[str, object] = {}
        for field, column in mapping.items():
            if field == ID_FIELD or column not in row:
                continue
            value = row[column]
            if isinstance(value, str) and field in self.html_fields:
                value = escape_xml(value)
            elif not isinstance(value, str | int | float | bool):
                value = str(value)
            fields[field] = value
        return fields
