"""Tests for test case, plan and work item models."""

import json

import pytest
from pydantic import ValidationError

from boostsec.ado_test_reporter.models.test_case import (
    ParsedTestCase,
    ResultRecord,
    TestCaseRef,
)
from boostsec.ado_test_reporter.models.test_plan import PublishSummary, RunRef
from boostsec.ado_test_reporter.models.work_item import (
    PatchOperation,
    RelationKind,
    WorkItem,
    WorkItemRelation,
)


def test_parsed_test_case_rejects_unknown_outcome() -> None:
    """Only Passed and Failed outcomes are accepted."""
    with pytest.raises(ValidationError):
        ParsedTestCase(name="t", outcome="Skipped")  # type: ignore[arg-type]


def test_result_record_starts_unplanned() -> None:
    """A new result record has no test point."""
    record = ResultRecord(
        test_case=TestCaseRef(id=1, revision=2, title="t"),
        title="t",
        outcome="Passed",
    )

    assert record.test_point_id is None
    assert record.local_attachments == []


def test_work_item_title() -> None:
    """title reads System.Title and is None when absent."""
    assert WorkItem(id=1, fields={"System.Title": "Login"}).title == "Login"
    assert WorkItem(id=2).title is None


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://dev.azure.com/org/proj/_apis/wit/workItems/42", 42),
        ("https://dev.azure.com/org/_apis/wit/workitems/42", 42),
        ("https://dev.azure.com/org/proj/_testManagement/runs?runId=7", None),
    ],
)
def test_relation_work_item_id(url: str, expected: int | None) -> None:
    """The linked id is read from org- and project-level URLs."""
    assert WorkItemRelation(url=url).work_item_id == expected


def test_patch_operation_rejects_unknown_op() -> None:
    """Patch operations are limited to add, remove, replace and test."""
    with pytest.raises(ValidationError):
        PatchOperation(op="move", path="/fields/System.Title")  # type: ignore[arg-type]


def test_relation_kind_values() -> None:
    """Relation kinds are plain string enums."""
    assert RelationKind("related") is RelationKind.RELATED


def test_publish_summary_json() -> None:
    """PublishSummary serializes the run and the counters."""
    summary = PublishSummary(
        run=RunRef(run_id=7, run_url="https://example/run"),
        processed=3,
        published=2,
        unplanned=1,
        passed=1,
        failed=1,
    )

    data = json.loads(summary.model_dump_json())

    assert data["run"] == {"run_id": 7, "run_url": "https://example/run"}
    assert data["unplanned"] == 1
    assert data["skipped"] == 0
