"""Abstract base class for the test-management backend."""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from boostsec.ado_test_reporter.models.test_case import ResultRecord
from boostsec.ado_test_reporter.models.test_plan import (
    TestPlan,
    TestPoint,
    TestRun,
    TestSuite,
)
from boostsec.ado_test_reporter.models.work_item import (
    PatchOperation,
    WorkItem,
    WorkItemLink,
)


class AzureDevOpsBackend(ABC):
    """Typed view of the Azure DevOps work item, test plan and test run APIs.

    Implementations raise ``NotFoundError`` for missing entities and
    ``AzureDevOpsError`` for any other unsuccessful response.
    """

    @abstractmethod
    async def get_work_item(
        self, work_item_id: int, expand_relations: bool = False
    ) -> WorkItem:
        """Fetch a work item, optionally with its relations."""

    @abstractmethod
    async def create_work_item(
        self, work_item_type: str, operations: Sequence[PatchOperation]
    ) -> WorkItem:
        """Create a work item of the given type from a patch document."""

    @abstractmethod
    async def update_work_item(
        self, work_item_id: int, operations: Sequence[PatchOperation]
    ) -> WorkItem:
        """Apply a patch document to a work item."""

    @abstractmethod
    async def query_work_item_ids(self, wiql: str) -> list[int]:
        """Run a flat WIQL query scoped to the project.

        Args:
            wiql: Query text; caller-supplied literals must already be escaped

        Returns:
            Matching work item ids in the order the backend returned them

        """

    @abstractmethod
    async def query_work_item_links(self, wiql: str) -> list[WorkItemLink]:
        """Run a WIQL link query scoped to the project."""

    @abstractmethod
    async def list_html_fields(self) -> set[str]:
        """Reference names of fields holding HTML."""

    @abstractmethod
    async def upload_work_item_attachment(self, file_name: str, content: bytes) -> str:
        """Upload a file and return the attachment URL."""

    @abstractmethod
    async def list_test_plans(self) -> list[TestPlan]:
        """List the project's test plans."""

    @abstractmethod
    async def create_test_plan(self, name: str) -> TestPlan:
        """Create a test plan rooted at the project area and iteration."""

    @abstractmethod
    async def list_test_suites(self, plan_id: int) -> list[TestSuite]:
        """List the suites of a plan."""

    @abstractmethod
    async def create_test_suite(
        self, plan_id: int, name: str, parent_suite_id: int
    ) -> TestSuite:
        """Create a static suite under the given parent."""

    @abstractmethod
    async def list_suite_test_case_ids(self, plan_id: int, suite_id: int) -> list[int]:
        """Ids of the test cases that are members of a suite."""

    @abstractmethod
    async def add_test_cases_to_suite(
        self, plan_id: int, suite_id: int, test_case_ids: Sequence[int]
    ) -> None:
        """Add test cases to a suite in one call."""

    @abstractmethod
    async def list_test_points(self, plan_id: int, suite_id: int) -> list[TestPoint]:
        """List the current points of a suite."""

    @abstractmethod
    async def create_test_run(
        self, name: str, plan_id: int, point_ids: Sequence[int], build_id: int
    ) -> TestRun:
        """Create an automated run for the given points."""

    @abstractmethod
    async def add_test_results(
        self, run_id: int, results: Sequence[ResultRecord]
    ) -> list[int]:
        """Submit results to a run and return the ids the backend accepted."""

    @abstractmethod
    async def add_test_run_attachment(
        self, run_id: int, file_name: str, content: bytes, comment: str
    ) -> None:
        """Attach a file to a run."""

    @abstractmethod
    async def add_test_result_attachment(
        self, run_id: int, result_id: int, file_name: str, content: bytes, comment: str
    ) -> None:
        """Attach a file to a single result of a run."""

    @abstractmethod
    async def update_test_run(self, run_id: int, state: str) -> TestRun:
        """Set a run's state and return the backend's view of the run."""

    @abstractmethod
    def work_item_url(self, work_item_id: int | str) -> str:
        """API URL used when relating to a work item.

        Raises:
            ValueError: If no valid URL can be built for the id

        """

    @abstractmethod
    def test_run_url(self, run_id: int) -> str:
        """Web URL of a test run."""
