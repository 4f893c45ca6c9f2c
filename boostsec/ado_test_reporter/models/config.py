"""Configuration models for the Azure DevOps connection and sync policy."""

import base64

from pydantic import BaseModel, Field


class AzureDevOpsConfig(BaseModel):
    """Connection settings for an Azure DevOps project."""

    token: str = Field(..., description="Personal access token or System.AccessToken")
    org_url: str = Field(
        ..., description="Organization URL (e.g., https://dev.azure.com/org)"
    )
    project: str = Field(..., description="Azure DevOps project name")

    @property
    def auth_header(self) -> str:
        """Basic authorization header value for the token."""
        encoded = base64.b64encode(f":{self.token}".encode()).decode()
        return f"Basic {encoded}"


class SyncPolicy(BaseModel):
    """Toggles that decide what the reporter may create, link or close."""

    create_failure_tasks: bool = Field(
        default=True, description="File work items for failing tests"
    )
    auto_close_on_pass: bool = Field(
        default=False, description="Close failure tasks once linked tests pass"
    )
    fallback_to_name_search: bool = Field(
        default=False, description="Search test cases by exact title"
    )
    auto_create_test_cases: bool = Field(
        default=True, description="Create missing test cases"
    )
    auto_create_plan: bool = Field(default=True, description="Create the test plan")
    auto_create_suite: bool = Field(default=True, description="Create the test suite")
    defect_type: str = Field(
        default="Task", description="Work item type used for failure tasks"
    )
    closed_state: str = Field(
        default="Closed", description="State that marks a failure task as closed"
    )
    html_fields: list[str] = Field(
        default_factory=list, description="Extra fields holding HTML content"
    )


class AppEnv(BaseModel):
    """Environment-derived settings for one invocation."""

    azure: AzureDevOpsConfig
    policy: SyncPolicy = Field(default_factory=SyncPolicy)
    build_id: int = Field(default=0, description="Pipeline build id")
    build_number: str = Field(default="Local Run", description="Pipeline build number")
    plan_name: str | None = Field(default=None, description="Default plan name")
    suite_name: str | None = Field(default=None, description="Default suite name")


class RunOptions(BaseModel):
    """Options for publishing one JUnit file."""

    plan_name: str
    suite_name: str
    build_id: int = 0
    build_number: str = "Local Run"
    attach_results: bool = False
    create_failure_tasks: bool = True
    auto_close_on_pass: bool = False
    artifacts_dir: str | None = None
    artifact_pattern: str | None = None
