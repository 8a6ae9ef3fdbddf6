"""Error taxonomy for plan generation and dispatch."""

from __future__ import annotations


class AgentPlannerError(Exception):
    """Base class for all errors raised by agentplanner."""

    error_code = "AGENT_PLANNER_ERROR"


class PlannerError(AgentPlannerError):
    """Raised when a planner provider cannot produce a plan."""

    error_code = "PLANNER_ERROR"


class MissingCredentialError(PlannerError):
    """Raised when the LLM planner has no API key to send."""

    error_code = "MISSING_CREDENTIAL"


class NetworkTimeoutError(PlannerError):
    """Raised when the chat-completion call exceeds its timeout."""

    error_code = "NETWORK_TIMEOUT"


class RemoteUnavailableError(PlannerError):
    """Raised when the chat-completion endpoint cannot be reached."""

    error_code = "REMOTE_UNAVAILABLE"


class RemoteApiError(PlannerError):
    """Raised when the chat-completion endpoint answers with a non-2xx status."""

    error_code = "REMOTE_API_ERROR"

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"LLM error {status}: {body}")


class MalformedResponseError(PlannerError):
    """Raised when the model output does not contain a JSON plan object."""

    error_code = "MALFORMED_RESPONSE"


class EmptyPlanGeneratedError(PlannerError):
    """Raised when the model returned a plan without any usable step."""

    error_code = "EMPTY_PLAN"


class InvalidPlanShapeError(AgentPlannerError):
    """Raised when a plan document does not satisfy the Plan shape."""

    error_code = "INVALID_PLAN_SHAPE"


class NoPlanAvailableError(AgentPlannerError):
    """Raised when execution is requested but the workspace has no plan."""

    error_code = "NO_PLAN"


class ProcessLaunchError(AgentPlannerError):
    """Raised when the external agent process cannot be started."""

    error_code = "LAUNCH_FAILED"
