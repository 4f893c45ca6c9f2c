"""Azure DevOps REST implementation of the test-management backend."""

import base64
import json
from collections.abc import Mapping, Sequence
from urllib.parse import quote

import aiohttp

from boostsec.ado_test_reporter.client.base import AzureDevOpsBackend
from boostsec.ado_test_reporter.errors import AzureDevOpsError, NotFoundError
from boostsec.ado_test_reporter.models.config import AzureDevOpsConfig
from boostsec.ado_test_reporter.models.test_case import ResultRecord
from boostsec.ado_test_reporter.models.test_plan import (
    TestPlan,
    TestPoint,
    TestRun,
    TestSuite,
)
from boostsec.ado_test_reporter.models.work_item import (
    PatchOperation,
    RelationKind,
    WorkItem,
    WorkItemLink,
    WorkItemRelation,
)


API_VERSION = "7.1"
PREVIEW_API_VERSION = "7.1-preview.1"
# Suite test case endpoints only exist on the legacy test API.
LEGACY_API_VERSION = "5.0"

RELATION_NAMES: dict[RelationKind, str] = {
    RelationKind.TESTED_BY: "Microsoft.VSTS.Common.TestedBy-Reverse",
    RelationKind.RELATED: "System.LinkTypes.Related",
    RelationKind.HYPERLINK: "Hyperlink",
    RelationKind.ATTACHED_FILE: "AttachedFile",
}
RELATION_KINDS: dict[str, RelationKind] = {
    name.lower(): kind for kind, name in RELATION_NAMES.items()
}


def _as_mapping(value: object) -> Mapping[str, object]:
    return value if isinstance(value, dict) else {}


def _as_list(value: object) -> list[object]:
    return value if isinstance(value, list) else []


def _as_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _relation_kind(rel: object) -> RelationKind | None:
    if not isinstance(rel, str):
        return None
    # Link queries report the forward/reverse flavour of related links.
    name = rel.lower().removesuffix("-forward").removesuffix("-reverse")
    if name == "system.linktypes.related":
        return RelationKind.RELATED
    return RELATION_KINDS.get(rel.lower())


def _serialize_value(value: object) -> object:
    if isinstance(value, WorkItemRelation):
        if value.kind is None:
            raise ValueError(f"Cannot write relation without a kind: {value.url}")
        payload: dict[str, object] = {
            "rel": RELATION_NAMES[value.kind],
            "url": value.url,
        }
        if value.comment:
            payload["attributes"] = {"comment": value.comment}
        return payload
    return value


def _result_payload(result: ResultRecord) -> dict[str, object]:
    payload: dict[str, object] = {
        "testCaseTitle": result.title,
        "automatedTestName": result.title,
        "durationInMs": result.duration_ms,
        "outcome": result.outcome,
        "state": "Completed",
        "testCase": {"id": str(result.test_case.id)},
        "testCaseRevision": result.test_case.revision,
    }
    if result.error_message:
        payload["errorMessage"] = result.error_message
    if result.test_point_id is not None:
        payload["testPoint"] = {"id": str(result.test_point_id)}
    return payload


def parse_work_item(data: Mapping[str, object]) -> WorkItem:
    """Build a WorkItem from a work item payload."""
    work_item_id = _as_int(data.get("id"))
    if work_item_id is None:
        raise AzureDevOpsError("Work item id not found in response")

    relations = []
    for raw in _as_list(data.get("relations")):
        relation = _as_mapping(raw)
        url = relation.get("url")
        if not isinstance(url, str):
            continue
        comment = _as_mapping(relation.get("attributes")).get("comment")
        relations.append(
            WorkItemRelation(
                kind=_relation_kind(relation.get("rel")),
                url=url,
                comment=comment if isinstance(comment, str) else None,
            )
        )

    url = data.get("url")
    return WorkItem(
        id=work_item_id,
        rev=_as_int(data.get("rev")) or 1,
        fields=dict(_as_mapping(data.get("fields"))),
        relations=relations,
        url=url if isinstance(url, str) else None,
    )


class AzureDevOpsClient(AzureDevOpsBackend):
    """Azure DevOps REST client."""

    def __init__(self, config: AzureDevOpsConfig) -> None:
        """Initialize Azure DevOps client with configuration."""
        self.config = config
        self.base_url = config.org_url.rstrip("/")
        self.project_url = f"{self.base_url}/{quote(config.project)}"

    async def _request(
        self,
        method: str,
        url: str,
        action: str,
        *,
        json_body: object = None,
        data: bytes | str | None = None,
        content_type: str = "application/json",
    ) -> object:
        """Send a request and return the decoded JSON body.

        Raises:
            NotFoundError: On 404
            AzureDevOpsError: On any other non-success status

        """
        headers = {"Authorization": self.config.auth_header}
        if json_body is not None or data is not None:
            headers["Content-Type"] = content_type

        async with aiohttp.ClientSession() as session:
            async with session.request(
                method, url, headers=headers, json=json_body, data=data
            ) as response:
                if response.status == 404:
                    text = await response.text()
                    raise NotFoundError(f"Failed to {action}: 404 {text}", 404)
                if response.status not in {200, 201}:
                    text = await response.text()
                    raise AzureDevOpsError(
                        f"Failed to {action}: {response.status} {text}",
                        response.status,
                    )

                body: object = await response.json(content_type=None)

        return body

    async def _patch_request(
        self, method: str, url: str, action: str, operations: Sequence[PatchOperation]
    ) -> WorkItem:
        document = [
            {"op": op.op, "path": op.path, "value": _serialize_value(op.value)}
            for op in operations
        ]
        data = await self._request(
            method,
            url,
            action,
            data=json.dumps(document),
            content_type="application/json-patch+json",
        )
        return parse_work_item(_as_mapping(data))

    async def get_work_item(
        self, work_item_id: int, expand_relations: bool = False
    ) -> WorkItem:
        """Fetch a work item, optionally with its relations."""
        expand = "$expand=relations&" if expand_relations else ""
        url = (
            f"{self.project_url}/_apis/wit/workitems/{work_item_id}"
            f"?{expand}api-version={API_VERSION}"
        )
        data = await self._request("GET", url, f"get work item {work_item_id}")
        return parse_work_item(_as_mapping(data))

    async def create_work_item(
        self, work_item_type: str, operations: Sequence[PatchOperation]
    ) -> WorkItem:
        """Create a work item of the given type from a patch document."""
        url = (
            f"{self.project_url}/_apis/wit/workitems/${quote(work_item_type)}"
            f"?api-version={API_VERSION}"
        )
        return await self._patch_request(
            "POST", url, f"create {work_item_type}", operations
        )

    async def update_work_item(
        self, work_item_id: int, operations: Sequence[PatchOperation]
    ) -> WorkItem:
        """Apply a patch document to a work item."""
        url = (
            f"{self.project_url}/_apis/wit/workitems/{work_item_id}"
            f"?api-version={API_VERSION}"
        )
        return await self._patch_request(
            "PATCH", url, f"update work item {work_item_id}", operations
        )

    async def _query(self, wiql: str) -> Mapping[str, object]:
        url = f"{self.project_url}/_apis/wit/wiql?api-version={API_VERSION}"
        data = await self._request(
            "POST", url, "query work items", json_body={"query": wiql}
        )
        return _as_mapping(data)

    async def query_work_item_ids(self, wiql: str) -> list[int]:
        """Run a flat WIQL query scoped to the project."""
        data = await self._query(wiql)
        ids = []
        for item in _as_list(data.get("workItems")):
            work_item_id = _as_int(_as_mapping(item).get("id"))
            if work_item_id is not None:
                ids.append(work_item_id)
        return ids

    async def query_work_item_links(self, wiql: str) -> list[WorkItemLink]:
        """Run a WIQL link query scoped to the project."""
        data = await self._query(wiql)
        links = []
        for raw in _as_list(data.get("workItemRelations")):
            relation = _as_mapping(raw)
            target_id = _as_int(_as_mapping(relation.get("target")).get("id"))
            if target_id is None:
                continue
            links.append(
                WorkItemLink(
                    kind=_relation_kind(relation.get("rel")),
                    source_id=_as_int(_as_mapping(relation.get("source")).get("id")),
                    target_id=target_id,
                )
            )
        return links

    async def list_html_fields(self) -> set[str]:
        """Reference names of fields holding HTML."""
        url = f"{self.project_url}/_apis/wit/fields?api-version={API_VERSION}"
        data = _as_mapping(await self._request("GET", url, "list fields"))
        names = set()
        for raw in _as_list(data.get("value")):
            field = _as_mapping(raw)
            name = field.get("referenceName")
            if isinstance(name, str) and str(field.get("type", "")).lower() == "html":
                names.add(name)
        return names

    async def upload_work_item_attachment(self, file_name: str, content: bytes) -> str:
        """Upload a file and return the attachment URL."""
        url = (
            f"{self.project_url}/_apis/wit/attachments"
            f"?fileName={quote(file_name)}&api-version={API_VERSION}"
        )
        data = _as_mapping(
            await self._request(
                "POST",
                url,
                f"upload attachment {file_name}",
                data=content,
                content_type="application/octet-stream",
            )
        )
        attachment_url = data.get("url")
        if not isinstance(attachment_url, str):
            raise AzureDevOpsError("Attachment URL not found in response")
        return attachment_url

    async def list_test_plans(self) -> list[TestPlan]:
        """List the project's test plans."""
        url = (
            f"{self.project_url}/_apis/testplan/plans"
            f"?includePlanDetails=true&api-version={API_VERSION}"
        )
        data = _as_mapping(await self._request("GET", url, "list test plans"))
        return [
            plan
            for plan in (
                self._parse_plan(_as_mapping(raw)) for raw in _as_list(data.get("value"))
            )
            if plan is not None
        ]

    async def create_test_plan(self, name: str) -> TestPlan:
        """Create a test plan rooted at the project area and iteration."""
        url = f"{self.project_url}/_apis/testplan/plans?api-version={API_VERSION}"
        payload = {
            "name": name,
            "areaPath": self.config.project,
            "iteration": self.config.project,
        }
        data = await self._request(
            "POST", url, "create test plan", json_body=payload
        )
        plan = self._parse_plan(_as_mapping(data))
        if plan is None:
            raise AzureDevOpsError("Test plan ID not found in response")
        return plan

    async def list_test_suites(self, plan_id: int) -> list[TestSuite]:
        """List the suites of a plan."""
        url = (
            f"{self.project_url}/_apis/testplan/Plans/{plan_id}/suites"
            f"?api-version={API_VERSION}"
        )
        data = _as_mapping(await self._request("GET", url, "list test suites"))
        return [
            suite
            for suite in (
                self._parse_suite(_as_mapping(raw)) for raw in _as_list(data.get("value"))
            )
            if suite is not None
        ]

    async def create_test_suite(
        self, plan_id: int, name: str, parent_suite_id: int
    ) -> TestSuite:
        """Create a static suite under the given parent."""
        url = (
            f"{self.project_url}/_apis/testplan/Plans/{plan_id}/suites"
            f"?api-version={API_VERSION}"
        )
        payload = {
            "suiteType": "staticTestSuite",
            "name": name,
            "parentSuite": {"id": parent_suite_id},
        }
        data = await self._request(
            "POST", url, "create test suite", json_body=payload
        )
        suite = self._parse_suite(_as_mapping(data))
        if suite is None:
            raise AzureDevOpsError("Test suite ID not found in response")
        return suite

    async def list_suite_test_case_ids(self, plan_id: int, suite_id: int) -> list[int]:
        """Ids of the test cases that are members of a suite."""
        url = (
            f"{self.project_url}/_apis/test/Plans/{plan_id}/suites/{suite_id}"
            f"/testcases?api-version={LEGACY_API_VERSION}"
        )
        data = _as_mapping(await self._request("GET", url, "list suite test cases"))
        ids = []
        for raw in _as_list(data.get("value")):
            test_case_id = _as_int(_as_mapping(_as_mapping(raw).get("testCase")).get("id"))
            if test_case_id is not None:
                ids.append(test_case_id)
        return ids

    async def add_test_cases_to_suite(
        self, plan_id: int, suite_id: int, test_case_ids: Sequence[int]
    ) -> None:
        """Add test cases to a suite in one call."""
        ids_csv = ",".join(str(test_case_id) for test_case_id in test_case_ids)
        url = (
            f"{self.project_url}/_apis/test/Plans/{plan_id}/suites/{suite_id}"
            f"/testcases/{ids_csv}?api-version={LEGACY_API_VERSION}"
        )
        await self._request("POST", url, "add test cases to suite")

    async def list_test_points(self, plan_id: int, suite_id: int) -> list[TestPoint]:
        """List the current points of a suite."""
        url = (
            f"{self.project_url}/_apis/testplan/Plans/{plan_id}/Suites/{suite_id}"
            f"/TestPoint?api-version={API_VERSION}"
        )
        data = _as_mapping(await self._request("GET", url, "list test points"))
        points = []
        for raw in _as_list(data.get("value")):
            point = _as_mapping(raw)
            point_id = _as_int(point.get("id"))
            if point_id is None:
                continue
            reference = _as_mapping(point.get("testCaseReference"))
            title = reference.get("name")
            points.append(
                TestPoint(
                    id=point_id,
                    test_case_id=_as_int(reference.get("id")),
                    test_case_title=title if isinstance(title, str) else None,
                )
            )
        return points

    async def create_test_run(
        self, name: str, plan_id: int, point_ids: Sequence[int], build_id: int
    ) -> TestRun:
        """Create an automated run for the given points."""
        url = f"{self.project_url}/_apis/test/runs?api-version={API_VERSION}"
        payload: dict[str, object] = {
            "name": name,
            "plan": {"id": str(plan_id)},
            "pointIds": list(point_ids),
            "automated": True,
            "configurationIds": [],
        }
        if build_id:
            payload["build"] = {"id": str(build_id)}

        data = _as_mapping(
            await self._request("POST", url, "create test run", json_body=payload)
        )
        state = data.get("state")
        return TestRun(
            id=_as_int(data.get("id")),
            state=state if isinstance(state, str) else None,
        )

    async def add_test_results(
        self, run_id: int, results: Sequence[ResultRecord]
    ) -> list[int]:
        """Submit results to a run and return the ids the backend accepted."""
        url = (
            f"{self.project_url}/_apis/test/Runs/{run_id}/results"
            f"?api-version={API_VERSION}"
        )
        payload = [_result_payload(result) for result in results]
        data = _as_mapping(
            await self._request("POST", url, "add test results", json_body=payload)
        )
        ids = []
        for raw in _as_list(data.get("value")):
            result_id = _as_int(_as_mapping(raw).get("id"))
            if result_id is not None:
                ids.append(result_id)
        return ids

    async def add_test_run_attachment(
        self, run_id: int, file_name: str, content: bytes, comment: str
    ) -> None:
        """Attach a file to a run."""
        url = (
            f"{self.project_url}/_apis/test/Runs/{run_id}/attachments"
            f"?api-version={PREVIEW_API_VERSION}"
        )
        await self._request(
            "POST",
            url,
            f"attach {file_name} to run {run_id}",
            json_body=self._attachment_payload(file_name, content, comment),
        )

    async def add_test_result_attachment(
        self, run_id: int, result_id: int, file_name: str, content: bytes, comment: str
    ) -> None:
        """Attach a file to a single result of a run."""
        url = (
            f"{self.project_url}/_apis/test/Runs/{run_id}/Results/{result_id}"
            f"/attachments?api-version={PREVIEW_API_VERSION}"
        )
        await self._request(
            "POST",
            url,
            f"attach {file_name} to result {result_id}",
            json_body=self._attachment_payload(file_name, content, comment),
        )

    async def update_test_run(self, run_id: int, state: str) -> TestRun:
        """Set a run's state and return the backend's view of the run."""
        url = f"{self.project_url}/_apis/test/runs/{run_id}?api-version={API_VERSION}"
        data = _as_mapping(
            await self._request(
                "PATCH", url, f"update test run {run_id}", json_body={"state": state}
            )
        )
        echoed = data.get("state")
        return TestRun(
            id=_as_int(data.get("id")),
            state=echoed if isinstance(echoed, str) else None,
        )

    def work_item_url(self, work_item_id: int | str) -> str:
        """API URL used when relating to a work item."""
        if not str(work_item_id).isdigit():
            raise ValueError(f"Invalid work item id: {work_item_id!r}")
        if not self.base_url.startswith(("https://", "http://")):
            raise ValueError(f"Invalid organization URL: {self.base_url!r}")
        return f"{self.project_url}/_apis/wit/workItems/{work_item_id}"

    def test_run_url(self, run_id: int) -> str:
        """Web URL of a test run."""
        return f"{self.project_url}/_testManagement/runs?runId={run_id}"

    def _attachment_payload(
        self, file_name: str, content: bytes, comment: str
    ) -> dict[str, str]:
        return {
            "stream": base64.b64encode(content).decode(),
            "fileName": file_name,
            "comment": comment,
            "attachmentType": "GeneralAttachment",
        }

    def _parse_plan(self, data: Mapping[str, object]) -> TestPlan | None:
        plan_id = _as_int(data.get("id"))
        if plan_id is None:
            return None
        return TestPlan(
            id=plan_id,
            name=str(data.get("name", "")),
            root_suite_id=_as_int(_as_mapping(data.get("rootSuite")).get("id")),
        )

    def _parse_suite(self, data: Mapping[str, object]) -> TestSuite | None:
        suite_id = _as_int(data.get("id"))
        if suite_id is None:
            return None
        return TestSuite(
            id=suite_id,
            name=str(data.get("name", "")),
            parent_suite_id=_as_int(_as_mapping(data.get("parentSuite")).get("id")),
        )
