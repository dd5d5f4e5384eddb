"""
Errors

Every error raised by plan-council derives from PlanCouncilError and
carries a stable code, an HTTP status and a context dict for the API body.

Progress-tracking failures (cache and artifact I/O) are logged by the
accumulator and persister rather than raised to callers.
"""

from typing import Any


class PlanCouncilError(Exception):
    """
    Root of the plan-council error tree.

    ``code`` defaults to the class ``error_code``; ``cause`` is chained as
    ``__cause__``.
    """

    error_code: str = "PLAN_COUNCIL_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.error_code
        self.context = context or {}
        self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """JSON body used by the error middleware."""
        return {
            "error": self.code,
            "message": self.message,
            "context": self.context,
        }


# -- configuration --
class ConfigurationError(PlanCouncilError):
    """Invalid or unsupported configuration value."""

    error_code = "CONFIGURATION_ERROR"


# -- workflow --
class WorkflowError(PlanCouncilError):
    """Base error for workflow definition issues."""

    error_code = "WORKFLOW_ERROR"


class DuplicateStepError(WorkflowError):
    """A step id was registered twice."""

    error_code = "DUPLICATE_STEP"

    def __init__(self, step_id: str, **kwargs: Any):
        super().__init__(
            f"Workflow step already registered: {step_id}",
            context={"step_id": step_id},
            **kwargs,
        )
        self.step_id = step_id


# -- storage --
class StoreError(PlanCouncilError):
    """Accumulator store read/write failure."""

    error_code = "STORE_ERROR"


# -- plan parsing --
class PlanParseError(PlanCouncilError):
    """No steps could be parsed from a plan (strict parsing only)."""

    error_code = "PLAN_PARSE_ERROR"
    status_code = 422
