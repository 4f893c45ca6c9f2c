"""Models for Gherkin scenarios and the manual steps built from them."""

from pydantic import BaseModel, Field


class ParsedStep(BaseModel):
    """Gherkin step keyword and text."""

    keyword: str
    text: str


class ParsedScenario(BaseModel):
    """Scenario with backgrounds merged and inherited tags applied."""

    name: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    steps: list[ParsedStep] = Field(default_factory=list)
    tc_id: int | None = Field(default=None, description="Id from an @TC_<id> tag")
    feature_name: str = ""
    feature_description: str = ""


class AdoStep(BaseModel):
    """Manual test step with action and expected result (HTML)."""

    action: str = ""
    expected: str = ""
