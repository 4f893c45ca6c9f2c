"""Convert Gherkin steps into manual test steps."""

from collections.abc import Sequence

from boostsec.ado_test_reporter.models.scenario import AdoStep, ParsedStep
from boostsec.ado_test_reporter.redaction import redact
from boostsec.ado_test_reporter.sanitize import escape_xml, sanitize_for_csv

STEP_SEPARATOR = "<br/>"
CONTINUATION_KEYWORDS = frozenset({"And", "But", "*"})
THEN_KEYWORD = "Then"


def _append(current: str, line: str) -> str:
    return f"{current}{STEP_SEPARATOR}{line}" if current else line


class GherkinStepConverter:
    """Groups Given/When actions with the Then outcomes that follow them."""

    def convert(self, steps: Sequence[ParsedStep]) -> list[AdoStep]:
        """Convert steps to action/expected pairs.

        ``Given`` and ``When`` extend the current action until an expected
        result has been recorded, then open a new step. ``Then`` writes the
        expected result. ``And``, ``But`` and ``*`` continue whichever side was
        written last.

        Args:
            steps: Steps in scenario order, background first

        Returns:
            Steps whose text is redacted and safe to embed in HTML

        """
        converted: list[AdoStep] = []
        current: AdoStep | None = None

        for step in steps:
            keyword = step.keyword.strip()
            text = escape_xml(sanitize_for_csv(redact(step.text)))
            line = f"{keyword} {text}"

            if keyword == THEN_KEYWORD:
                if current is None:
                    current = AdoStep(action="Check Condition", expected=line)
                    converted.append(current)
                else:
                    current.expected = _append(current.expected, line)
            elif keyword in CONTINUATION_KEYWORDS:
                if current is None:
                    current = AdoStep(action=line)
                    converted.append(current)
                elif current.expected:
                    current.expected = _append(current.expected, line)
                else:
                    current.action = _append(current.action, line)
            elif current is None or current.expected:
                current = AdoStep(action=line)
                converted.append(current)
            else:
                current.action = _append(current.action, line)

        return converted
