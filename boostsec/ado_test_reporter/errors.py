"""Exception types raised by the reporter."""


class ConfigError(ValueError):
    """Required configuration is missing or invalid."""


class AzureDevOpsError(RuntimeError):
    """Azure DevOps answered a request with a non-success status."""

    def __init__(self, message: str, status: int | None = None) -> None:
        """Initialize with the message and the HTTP status, if any."""
        super().__init__(message)
        self.status = status


class NotFoundError(AzureDevOpsError):
    """Azure DevOps answered 404 for the requested entity."""


class PublishError(RuntimeError):
    """The backend violated the run publishing contract."""


class TestCaseNotFoundError(LookupError):
    """No test case matched and auto-creation is disabled."""

    __test__ = False


class PlanNotFoundError(LookupError):
    """No test plan matched and auto-creation is disabled."""


class SuiteNotFoundError(LookupError):
    """No test suite matched and auto-creation is disabled."""
