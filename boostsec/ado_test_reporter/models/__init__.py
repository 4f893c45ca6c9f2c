"""Data models for test cases, plans, work items, scenarios and configuration."""

from boostsec.ado_test_reporter.models.config import (
    AppEnv,
    AzureDevOpsConfig,
    RunOptions,
    SyncPolicy,
)
from boostsec.ado_test_reporter.models.scenario import (
    AdoStep,
    ParsedScenario,
    ParsedStep,
)
from boostsec.ado_test_reporter.models.test_case import (
    Outcome,
    ParsedTestCase,
    ResultRecord,
    TestCaseRef,
)
from boostsec.ado_test_reporter.models.test_plan import (
    PlanRef,
    PublishSummary,
    RunRef,
    SuiteRef,
    TestPlan,
    TestPoint,
    TestRun,
    TestSuite,
)
from boostsec.ado_test_reporter.models.work_item import (
    FailureInfo,
    PatchOperation,
    RelationKind,
    WorkItem,
    WorkItemLink,
    WorkItemRelation,
)

__all__ = [
    "AdoStep",
    "AppEnv",
    "AzureDevOpsConfig",
    "FailureInfo",
    "Outcome",
    "ParsedScenario",
    "ParsedStep",
    "ParsedTestCase",
    "PatchOperation",
    "PlanRef",
    "PublishSummary",
    "RelationKind",
    "ResultRecord",
    "RunOptions",
    "RunRef",
    "SuiteRef",
    "SyncPolicy",
    "TestCaseRef",
    "TestPlan",
    "TestPoint",
    "TestRun",
    "TestSuite",
    "WorkItem",
    "WorkItemLink",
    "WorkItemRelation",
]
