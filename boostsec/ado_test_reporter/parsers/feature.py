"""Parse Gherkin feature files into flat scenarios."""

import glob
import logging
import re
from collections.abc import Iterable, Mapping
from pathlib import Path

from gherkin.errors import ParserError
from gherkin.parser import Parser
from gherkin.token_scanner import TokenScanner

from boostsec.ado_test_reporter.models.scenario import ParsedScenario, ParsedStep
from boostsec.ado_test_reporter.paths import MAX_INPUT_FILE_SIZE
from boostsec.ado_test_reporter.redaction import redact

logger = logging.getLogger(__name__)

TC_TAG_PATTERN = re.compile(r"^@TC_(\d+)$")

GherkinNode = Mapping[str, object]


def _nodes(value: object) -> list[GherkinNode]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]


def _tags(node: GherkinNode) -> list[str]:
    return [str(tag["name"]) for tag in _nodes(node.get("tags")) if "name" in tag]


def _text(node: GherkinNode, key: str) -> str:
    value = node.get(key)
    return value.strip() if isinstance(value, str) else ""


def _background_steps(children: Iterable[GherkinNode]) -> list[ParsedStep]:
    for child in children:
        background = child.get("background")
        if isinstance(background, Mapping):
            return _steps(background)
    return []


def _steps(node: GherkinNode) -> list[ParsedStep]:
    return [
        ParsedStep(keyword=_text(step, "keyword"), text=_text(step, "text"))
        for step in _nodes(node.get("steps"))
    ]


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))


class GherkinFeatureParser:
    """Finds feature files by glob and flattens their scenarios."""

    def __init__(self) -> None:
        """Initialize the parser."""
        self._parser = Parser()

    def parse(self, pattern: str) -> list[ParsedScenario]:
        """Parse every feature file matching a recursive glob pattern.

        Args:
            pattern: Glob pattern, ``**`` matches nested directories

        Returns:
            Scenarios with backgrounds merged and inherited tags applied

        Raises:
            ValueError: If a file is too large or has a Gherkin syntax error

        """
        logger.info(f"Searching for feature files: {pattern}")
        files = sorted(glob.glob(pattern, recursive=True))
        if not files:
            logger.info("No feature files found")
            return []

        scenarios: list[ParsedScenario] = []
        for file in files:
            content = self._read_feature_file(Path(file))
            if content is not None:
                scenarios.extend(self.parse_text(content, file))

        logger.info(f"Parsed {len(scenarios)} scenario(s) from {len(files)} file(s)")
        return scenarios

    def _read_feature_file(self, path: Path) -> str | None:
        try:
            if not path.is_file():
                return None
            size = path.stat().st_size
        except OSError as e:
            logger.warning(f"Skipping file due to access error: {path}: {e}")
            return None

        if size > MAX_INPUT_FILE_SIZE:
            raise ValueError(
                f"Feature file is too large ({size / 1024 / 1024:.2f}MB): {path}. "
                f"Max allowed: {MAX_INPUT_FILE_SIZE // 1024 // 1024}MB."
            )

        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping file due to access error: {path}: {e}")
            return None

    def parse_text(self, content: str, source: str = "<string>") -> list[ParsedScenario]:
        """Parse the text of one feature file.

        Raises:
            ValueError: On Gherkin syntax errors

        """
        try:
            document = self._parser.parse(TokenScanner(content))
        except ParserError as e:
            raise ValueError(f"Invalid Gherkin in {source}: {e}") from e

        feature = document.get("feature")
        if not isinstance(feature, Mapping):
            return []

        feature_name = redact(_text(feature, "name"))
        feature_description = redact(_text(feature, "description"))
        feature_tags = _tags(feature)
        children = _nodes(feature.get("children"))
        feature_background = _background_steps(children)

        scenarios: list[ParsedScenario] = []
        for child in children:
            scenario = child.get("scenario")
            if isinstance(scenario, Mapping):
                scenarios.append(
                    self._build_scenario(
                        scenario,
                        feature_background,
                        feature_tags,
                        feature_name,
                        feature_description,
                    )
                )
                continue

            rule = child.get("rule")
            if not isinstance(rule, Mapping):
                continue
            rule_children = _nodes(rule.get("children"))
            background = feature_background + _background_steps(rule_children)
            tags = feature_tags + _tags(rule)
            for rule_child in rule_children:
                rule_scenario = rule_child.get("scenario")
                if isinstance(rule_scenario, Mapping):
                    scenarios.append(
                        self._build_scenario(
                            rule_scenario,
                            background,
                            tags,
                            feature_name,
                            feature_description,
                        )
                    )

        return scenarios

    def _build_scenario(
        self,
        scenario: GherkinNode,
        background: list[ParsedStep],
        inherited_tags: list[str],
        feature_name: str,
        feature_description: str,
    ) -> ParsedScenario:
        own_tags = _tags(scenario)

        tc_id = None
        for tag in own_tags:
            match = TC_TAG_PATTERN.match(tag)
            if match:
                tc_id = int(match.group(1))
                break

        # Step text is redacted by the step converter.
        return ParsedScenario(
            name=redact(_text(scenario, "name")),
            description=redact(_text(scenario, "description")),
            tags=_unique(inherited_tags + own_tags),
            steps=background + _steps(scenario),
            tc_id=tc_id,
            feature_name=feature_name,
            feature_description=feature_description,
        )
