"""Parse JUnit XML result files."""

import logging
import math
import re
import xml.etree.ElementTree as ET
from pathlib import Path

from boostsec.ado_test_reporter.models.test_case import ParsedTestCase
from boostsec.ado_test_reporter.paths import check_input_file
from boostsec.ado_test_reporter.redaction import redact

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 4096
TRUNCATION_MARKER = "... [truncated]"

ATTACHMENT_PATTERN = re.compile(r"\[\[ATTACHMENT\|([^\]\r\n]{1,4096})\]\]")


def truncate_error(message: str) -> str:
    """Cap an error message, marker included, at ``MAX_ERROR_LENGTH``."""
    if len(message) <= MAX_ERROR_LENGTH:
        return message
    return message[: MAX_ERROR_LENGTH - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


def _duration_ms(value: str | None) -> float:
    try:
        seconds = float(value) if value else 0.0
    except ValueError:
        return 0.0
    if not math.isfinite(seconds) or seconds < 0:
        return 0.0
    return seconds * 1000


def _error_message(element: ET.Element) -> str:
    message = (element.get("message") or "").strip()
    body = (element.text or "").strip()
    if message and body and message != body:
        return f"{message}\n{body}"
    return message or body


def _attachments(testcase: ET.Element) -> list[str]:
    paths: list[str] = []
    for tag in ("system-out", "system-err"):
        for output in testcase.iter(tag):
            for match in ATTACHMENT_PATTERN.finditer(output.text or ""):
                path = match.group(1).strip()
                if path and path not in paths:
                    paths.append(path)
    return paths


class JUnitParser:
    """Reads test cases from ``<testsuites>`` or bare ``<testsuite>`` documents."""

    def parse(self, path: str | Path) -> list[ParsedTestCase]:
        """Parse a JUnit XML file.

        Args:
            path: Result file

        Returns:
            Executed test cases in document order; skipped cases are left out

        Raises:
            ValueError: If the file is missing, not a regular file, too large
                or not well-formed XML

        """
        file_path = Path(path)
        check_input_file(file_path, "JUnit")

        try:
            root = ET.parse(file_path).getroot()
        except ET.ParseError as e:
            raise ValueError(f"Invalid JUnit XML in {file_path}: {e}") from e

        if root.tag == "testsuites":
            suites = root.findall("testsuite")
        elif root.tag == "testsuite":
            suites = [root]
        else:
            logger.warning(f"Unexpected JUnit root element <{root.tag}> in {file_path}")
            suites = []

        results: list[ParsedTestCase] = []
        for suite in suites:
            for testcase in suite.iter("testcase"):
                parsed = self._parse_testcase(testcase)
                if parsed is not None:
                    results.append(parsed)

        logger.info(f"Parsed {len(results)} test case(s) from {file_path}")
        return results

    def _parse_testcase(self, testcase: ET.Element) -> ParsedTestCase | None:
        name = redact(testcase.get("name") or "")

        if testcase.find("skipped") is not None:
            logger.info(f"Skipping test not executed: {name}")
            return None

        problem = testcase.find("failure")
        if problem is None:
            problem = testcase.find("error")

        error_message = None
        if problem is not None:
            error_message = truncate_error(redact(_error_message(problem)))

        return ParsedTestCase(
            name=name,
            duration_ms=_duration_ms(testcase.get("time")),
            outcome="Failed" if problem is not None else "Passed",
            error_message=error_message or None,
            attachments=_attachments(testcase),
        )
