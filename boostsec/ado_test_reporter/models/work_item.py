"""Models for work items, their relations and failure reports."""

import re
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

_WORK_ITEM_URL = re.compile(r"/_apis/wit/workitems/(\d+)$", re.IGNORECASE)


class RelationKind(str, Enum):
    """Kinds of work item relations the reporter reads and writes."""

    TESTED_BY = "tested-by"
    RELATED = "related"
    HYPERLINK = "hyperlink"
    ATTACHED_FILE = "attached-file"


class WorkItemRelation(BaseModel):
    """Typed link from a work item to another resource."""

    kind: RelationKind | None = Field(
        default=None, description="Relation kind, None for kinds not modelled"
    )
    url: str
    comment: str | None = None

    @property
    def work_item_id(self) -> int | None:
        """Id of the linked work item, for org- and project-level URLs alike."""
        match = _WORK_ITEM_URL.search(self.url)
        return int(match.group(1)) if match else None


class WorkItem(BaseModel):
    """Work item with its fields and (optionally expanded) relations."""

    id: int
    rev: int = 1
    fields: dict[str, object] = Field(default_factory=dict)
    relations: list[WorkItemRelation] = Field(default_factory=list)
    url: str | None = None

    @property
    def title(self) -> str | None:
        """System.Title, if present."""
        title = self.fields.get("System.Title")
        return str(title) if title is not None else None


class WorkItemLink(BaseModel):
    """One row of a work item link query."""

    kind: RelationKind | None = None
    source_id: int | None = None
    target_id: int


class PatchOperation(BaseModel):
    """JSON patch operation against a work item."""

    op: Literal["add", "remove", "replace", "test"]
    path: str
    value: object = None


class FailureInfo(BaseModel):
    """A failing test observation handed to the failure-task reconciler."""

    test_case_id: str
    test_name: str
    error_message: str | None = None
    build_number: str
    run_url: str
    run_id: int
    attachments: list[str] = Field(default_factory=list)
