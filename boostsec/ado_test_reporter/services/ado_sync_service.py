"""Push Gherkin scenarios onto their Azure DevOps test cases."""

import logging
import re
from collections.abc import Sequence

from boostsec.ado_test_reporter.models.scenario import AdoStep, ParsedScenario
from boostsec.ado_test_reporter.redaction import redact
from boostsec.ado_test_reporter.sanitize import escape_xml
from boostsec.ado_test_reporter.services.test_case_service import TestCaseService
from boostsec.ado_test_reporter.step_converter import GherkinStepConverter

logger = logging.getLogger(__name__)

TC_TAG_PREFIX = "@TC_"
REQUIREMENT_TAG_PATTERN = re.compile(
    r"@(?:Story|Requirement|Bug|Task|UserStory|Feature|Epic|Issue|AB#?)_?(\d+)",
    re.IGNORECASE,
)


def build_steps_xml(steps: Sequence[AdoStep]) -> str:
    """Render steps in the test case steps field format."""
    parts = [f'<steps id="0" last="{len(steps)}">']
    for index, step in enumerate(steps, start=1):
        parts.append(
            f'<step id="{index}" type="ActionStep">'
            f'<parameterizedString isformatted="true">{escape_xml(step.action)}'
            "</parameterizedString>"
            f'<parameterizedString isformatted="true">{escape_xml(step.expected)}'
            "</parameterizedString>"
            "<description/>"
            "</step>"
        )
    parts.append("</steps>")
    return "".join(parts)


def build_description(scenario: ParsedScenario) -> str:
    """HTML description naming the feature and the scenario."""
    parts = [f"<strong>Feature:</strong> {escape_xml(scenario.feature_name)}<br/>"]
    if scenario.feature_description:
        parts.append(f"<p>{escape_xml(scenario.feature_description)}</p>")
    parts.append("<br/>")
    parts.append(f"<strong>Scenario:</strong> {escape_xml(scenario.name)}<br/>")
    if scenario.description:
        parts.append(f"<p>{escape_xml(scenario.description)}</p>")
    return "".join(parts)


def requirement_ids_from_tags(tags: Sequence[str]) -> list[int]:
    """Requirement ids named by tags such as ``@Story_123`` or ``@AB#45``."""
    ids: list[int] = []
    for tag in tags:
        match = REQUIREMENT_TAG_PATTERN.search(tag)
        if match and int(match.group(1)) not in ids:
            ids.append(int(match.group(1)))
    return ids


class AdoSyncService:
    """Writes steps, tags and description from scenarios tagged ``@TC_<id>``."""

    def __init__(
        self,
        test_case_service: TestCaseService,
        step_converter: GherkinStepConverter | None = None,
    ) -> None:
        """Initialize with the test case service used for reads and writes."""
        self.test_case_service = test_case_service
        self.step_converter = step_converter or GherkinStepConverter()

    async def update_test_case(self, scenario: ParsedScenario) -> bool:
        """Sync one scenario onto its test case.

        Returns:
            True if the test case was updated

        """
        if not scenario.tc_id:
            logger.warning(f"Scenario '{scenario.name}' has no TC ID. Skipping.")
            return False

        test_case_id = scenario.tc_id
        try:
            existing = await self.test_case_service.get_test_case(test_case_id)
            if existing is None:
                logger.warning(
                    f"Test Case {test_case_id} not found or inaccessible. Skipping."
                )
                return False

            steps = self.step_converter.convert(scenario.steps)
            tags = [tag for tag in scenario.tags if not tag.startswith(TC_TAG_PREFIX)]
            logger.info(
                f"Found scenario: {scenario.name} -> ID: {test_case_id} "
                f"[Tags: {', '.join(tags)}]"
            )

            await self.test_case_service.update_test_case(
                test_case_id,
                {
                    "Microsoft.VSTS.TCM.Steps": build_steps_xml(steps),
                    "System.Tags": "; ".join(tags),
                    "System.Description": build_description(scenario),
                },
            )

            requirement_ids = requirement_ids_from_tags(scenario.tags)
            if requirement_ids:
                logger.info(
                    f"Linking TC {test_case_id} to requirements: "
                    f"{', '.join(str(rid) for rid in requirement_ids)}"
                )
                await self.test_case_service.link_requirements_by_id(
                    test_case_id, requirement_ids
                )
        except Exception as e:
            logger.error(redact(f"Failed to update TC {test_case_id}: {e}"))
            return False

        logger.info(f"Updated TC {test_case_id} steps, tags, fields and links")
        return True

    async def sync_scenarios(self, scenarios: Sequence[ParsedScenario]) -> int:
        """Sync scenarios one after another.

        Returns:
            Number of scenarios attempted

        """
        for scenario in scenarios:
            await self.update_test_case(scenario)
        return len(scenarios)
