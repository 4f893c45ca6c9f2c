"""File, update and close work items that track failing tests."""

import hashlib
import logging
import re
from datetime import datetime, timezone
from pathlib import Path

from boostsec.ado_test_reporter.client.base import AzureDevOpsBackend
from boostsec.ado_test_reporter.models.work_item import (
    FailureInfo,
    PatchOperation,
    RelationKind,
    WorkItem,
    WorkItemRelation,
)
from boostsec.ado_test_reporter.paths import read_attachment
from boostsec.ado_test_reporter.sanitize import (
    escape_wiql,
    escape_xml,
    sanitize_for_csv,
)

logger = logging.getLogger(__name__)

FAILURE_TAG = "AutomatedTestFailure"
HASH_TAG_PREFIX = "ErrorHash:"
HASH_LENGTH = 16
MAX_TITLE_LENGTH = 255
MAX_TITLE_ERROR_LENGTH = 100
MAX_COMMENT_ERROR_LENGTH = 500

_WHITESPACE = re.compile(r"\s+")


def error_hash(message: str) -> str:
    """Stable fingerprint of an error message, insensitive to whitespace."""
    normalized = _WHITESPACE.sub(" ", message.strip())
    return hashlib.sha256(normalized.encode()).hexdigest()[:HASH_LENGTH]


def build_task_title(failure: FailureInfo) -> str:
    """Title for a new failure task, capped at the backend's title length."""
    message = (failure.error_message or "").strip()
    if message:
        first_line = message.splitlines()[0]
        title = f"[Auto] {sanitize_for_csv(first_line[:MAX_TITLE_ERROR_LENGTH])}"
    else:
        name = sanitize_for_csv(failure.test_name)
        title = f"[Auto] Investigate: {name} (TC {failure.test_case_id})"
    return title[:MAX_TITLE_LENGTH]


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


class FailureTaskService:
    """Creates one task per distinct failure and closes it once tests pass."""

    def __init__(
        self,
        backend: AzureDevOpsBackend,
        project: str,
        defect_type: str = "Task",
        closed_state: str = "Closed",
        attachment_root: str | Path | None = None,
    ) -> None:
        """Initialize the reconciler for one orchestration run."""
        self.backend = backend
        self.project = project
        self.defect_type = defect_type
        self.closed_state = closed_state
        self.attachment_root = attachment_root
        self._tasks_by_hash: dict[str, int] = {}

    async def create_task_for_failure(self, failure: FailureInfo) -> int | None:
        """Record a failure on an open task, creating the task if needed.

        Identical error messages land on the same open task. Without an error
        message, an open task naming the test case is reused.

        Returns:
            Id of the task that now tracks the failure, or None if creation failed

        """
        if failure.error_message is not None and not failure.error_message.strip():
            failure = failure.model_copy(update={"error_message": None})
        hash_value = error_hash(failure.error_message) if failure.error_message else None

        task_id = await self._find_open_task(failure, hash_value)
        if task_id is not None:
            logger.info(
                f"Task {task_id} already tracks failure of {failure.test_name}; "
                "adding comment"
            )
            await self._update_existing_task(task_id, failure)
        else:
            task_id = await self._create_task(failure, hash_value)

        if task_id is not None and hash_value:
            self._tasks_by_hash[hash_value] = task_id
        return task_id

    async def _find_open_task(
        self, failure: FailureInfo, hash_value: str | None
    ) -> int | None:
        if hash_value:
            known = self._tasks_by_hash.get(hash_value)
            if known is not None:
                return known
            condition = f"[System.Tags] CONTAINS '{HASH_TAG_PREFIX}{hash_value}'"
        else:
            condition = (
                f"[System.Title] CONTAINS '{escape_wiql(failure.test_case_id)}'"
            )

        wiql = (
            "SELECT [System.Id] FROM WorkItems "
            f"WHERE [System.TeamProject] = '{escape_wiql(self.project)}' "
            f"AND [System.WorkItemType] = '{escape_wiql(self.defect_type)}' "
            f"AND {condition} "
            f"AND [System.State] <> '{escape_wiql(self.closed_state)}' "
            "ORDER BY [System.ChangedDate] DESC"
        )
        try:
            ids = await self.backend.query_work_item_ids(wiql)
        except Exception as e:
            logger.warning(
                f"Failed to query existing task for TC {failure.test_case_id}: {e}"
            )
            return None
        return ids[0] if ids else None

    def _history_comment(self, failure: FailureInfo) -> str:
        if failure.error_message:
            error = escape_xml(failure.error_message[:MAX_COMMENT_ERROR_LENGTH])
        else:
            error = "No error details."
        return (
            f"<p>[{_timestamp()}] Test failed in build "
            f"<b>{escape_xml(failure.build_number)}</b></p>"
            f"<p>Test: {escape_xml(failure.test_name)} (TC {failure.test_case_id})</p>"
            f"<p>Error: {error}</p>"
            f'<p>Run: <a href="{escape_xml(failure.run_url)}">'
            f"{escape_xml(failure.run_url)}</a></p>"
        )

    async def _update_existing_task(self, task_id: int, failure: FailureInfo) -> None:
        try:
            test_case_url = self.backend.work_item_url(failure.test_case_id)
        except ValueError as e:
            logger.warning(f"Skipping test case link on task {task_id}: {e}")
            test_case_url = None

        if test_case_url:
            await self._ensure_related_link(
                task_id, int(failure.test_case_id), test_case_url
            )

        try:
            await self.backend.update_work_item(
                task_id,
                [
                    PatchOperation(
                        op="add",
                        path="/fields/System.History",
                        value=self._history_comment(failure),
                    )
                ],
            )
        except Exception as e:
            logger.warning(f"Failed to add comment to task {task_id}: {e}")

        relations = await self._upload_attachments(failure)
        if not relations:
            return
        try:
            await self.backend.update_work_item(
                task_id,
                [
                    PatchOperation(op="add", path="/relations/-", value=relation)
                    for relation in relations
                ],
            )
        except Exception as e:
            logger.warning(f"Failed to attach files to task {task_id}: {e}")

    async def _ensure_related_link(
        self, task_id: int, test_case_id: int, test_case_url: str
    ) -> None:
        try:
            task = await self.backend.get_work_item(task_id, expand_relations=True)
            linked = any(
                relation.kind == RelationKind.RELATED
                and relation.work_item_id == test_case_id
                for relation in task.relations
            )
            if linked:
                return
            await self.backend.update_work_item(
                task_id,
                [
                    PatchOperation(
                        op="add",
                        path="/relations/-",
                        value=WorkItemRelation(
                            kind=RelationKind.RELATED,
                            url=test_case_url,
                            comment="Linked from automated test failure.",
                        ),
                    )
                ],
            )
            logger.info(f"Linked task {task_id} to {test_case_url}")
        except Exception as e:
            logger.warning(f"Failed to link task {task_id} to test case: {e}")

    async def _upload_attachments(self, failure: FailureInfo) -> list[WorkItemRelation]:
        relations = []
        for path in failure.attachments:
            content = read_attachment(path, self.attachment_root)
            if content is None:
                continue
            file_name = Path(path).name
            try:
                url = await self.backend.upload_work_item_attachment(file_name, content)
            except Exception as e:
                logger.warning(f"Failed to upload attachment {path}: {e}")
                continue
            relations.append(
                WorkItemRelation(
                    kind=RelationKind.ATTACHED_FILE,
                    url=url,
                    comment=f"Failure artifact for {failure.test_name}",
                )
            )
        return relations

    async def _create_task(
        self, failure: FailureInfo, hash_value: str | None
    ) -> int | None:
        description = (
            f"<p>Test failed in build <b>{escape_xml(failure.build_number)}</b></p>"
            f"<p>Test Case ID: {escape_xml(failure.test_case_id)}</p>"
        )
        if failure.error_message:
            description += f"<pre>{escape_xml(failure.error_message)}</pre>"
        else:
            description += "<p>No error message provided.</p>"

        tags = [FAILURE_TAG]
        if hash_value:
            tags.append(f"{HASH_TAG_PREFIX}{hash_value}")

        operations = [
            PatchOperation(
                op="add", path="/fields/System.Title", value=build_task_title(failure)
            ),
            PatchOperation(op="add", path="/fields/System.AreaPath", value=self.project),
            PatchOperation(
                op="add", path="/fields/System.IterationPath", value=self.project
            ),
            PatchOperation(
                op="add", path="/fields/System.Description", value=description
            ),
            PatchOperation(op="add", path="/fields/System.Tags", value="; ".join(tags)),
        ]

        relations = []
        try:
            relations.append(
                WorkItemRelation(
                    kind=RelationKind.RELATED,
                    url=self.backend.work_item_url(failure.test_case_id),
                    comment="Linked from automated test failure.",
                )
            )
        except ValueError as e:
            logger.warning(
                f"Skipping relation link for {failure.test_name} due to URL issue: {e}"
            )
        relations.append(
            WorkItemRelation(
                kind=RelationKind.HYPERLINK,
                url=failure.run_url,
                comment=f"Test Run {failure.run_id}",
            )
        )
        relations.extend(await self._upload_attachments(failure))
        operations.extend(
            PatchOperation(op="add", path="/relations/-", value=relation)
            for relation in relations
        )

        try:
            created = await self.backend.create_work_item(self.defect_type, operations)
        except Exception as e:
            logger.error(f"Failed to create task for {failure.test_name}: {e}")
            return None

        logger.info(f"Created task {created.id} for failed test {failure.test_name}")
        return created.id

    async def resolve_task_for_success(
        self, test_case_id: int, build_number: str
    ) -> None:
        """Unlink a passing test case from its open task, closing it when last.

        The task is closed only when this test case is its final related work
        item, so a task shared by several failing tests stays open until each
        of them has passed.
        """
        wiql = (
            "SELECT [System.Id] FROM WorkItemLinks "
            f"WHERE [Source].[System.TeamProject] = '{escape_wiql(self.project)}' "
            f"AND [Source].[System.WorkItemType] = '{escape_wiql(self.defect_type)}' "
            f"AND [Source].[System.State] <> '{escape_wiql(self.closed_state)}' "
            "AND [System.Links.LinkType] = 'System.LinkTypes.Related' "
            f"AND [Target].[System.Id] = {int(test_case_id)} "
            "MODE (MustContain)"
        )
        try:
            links = await self.backend.query_work_item_links(wiql)
        except Exception as e:
            logger.warning(f"Failed to query tasks for test case {test_case_id}: {e}")
            return

        task_ids = [
            link.source_id
            for link in links
            if link.source_id is not None and link.target_id == test_case_id
        ]
        if not task_ids:
            return

        task_id = task_ids[0]
        try:
            task = await self.backend.get_work_item(task_id, expand_relations=True)
            await self._unlink_and_maybe_close(task, test_case_id, build_number)
        except Exception as e:
            logger.warning(f"Failed to resolve task {task_id} for {test_case_id}: {e}")

    async def _unlink_and_maybe_close(
        self, task: WorkItem, test_case_id: int, build_number: str
    ) -> None:
        index = None
        related_count = 0
        for position, relation in enumerate(task.relations):
            if relation.kind != RelationKind.RELATED:
                continue
            linked_id = relation.work_item_id
            if linked_id is None:
                continue
            related_count += 1
            if linked_id == test_case_id and index is None:
                index = position

        if index is None:
            logger.warning(f"Task {task.id} has no link to test case {test_case_id}")
            return

        closing = related_count <= 1
        comment = (
            f"<p>[{_timestamp()}] Test case {test_case_id} passed in build "
            f"<b>{escape_xml(build_number)}</b>.</p>"
        )
        if closing:
            comment += "<p>All linked test cases pass; closing task.</p>"

        operations = [
            PatchOperation(op="test", path="/rev", value=task.rev),
            PatchOperation(op="remove", path=f"/relations/{index}"),
            PatchOperation(op="add", path="/fields/System.History", value=comment),
        ]
        if closing:
            operations.append(
                PatchOperation(
                    op="add", path="/fields/System.State", value=self.closed_state
                )
            )

        await self.backend.update_work_item(task.id, operations)
        if closing:
            logger.info(f"Closed task {task.id}: test case {test_case_id} passed")
        else:
            logger.info(
                f"Unlinked test case {test_case_id} from task {task.id}; "
                f"{related_count - 1} failing test case(s) remain"
            )
