"""Error taxonomy for FocusFlow.

Services raise these internally and convert them into result dicts at their
boundary; the HTTP layer maps ``code`` to a status.
"""

from typing import Any, Optional


class FocusFlowError(Exception):
    """Base class for every expected failure."""

    code = "INTERNAL_ERROR"
    status = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[list[dict[str, Any]]] = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_result(self) -> dict[str, Any]:
        result: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            result["details"] = self.details
        return result


class Unauthorized(FocusFlowError):
    code = "UNAUTHORIZED"
    status = 401
    default_message = "Unauthorized"


class ValidationError(FocusFlowError):
    code = "BAD_REQUEST"
    status = 400
    default_message = "Invalid input"

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        details = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return cls(details=details)


class NotFound(FocusFlowError):
    code = "NOT_FOUND"
    status = 404
    default_message = "Not found"


class UpstreamFailure(FocusFlowError):
    code = "INTERNAL_ERROR"
    status = 500
    default_message = "Upstream service failed"


class ServiceUnavailable(FocusFlowError):
    code = "SERVICE_UNAVAILABLE"
    status = 500
    default_message = "AI service not configured"


STATUS_BY_CODE = {
    cls.code: cls.status
    for cls in (Unauthorized, ValidationError, NotFound, ServiceUnavailable, FocusFlowError)
}


def status_for(result: dict[str, Any]) -> int:
    """HTTP status for a service result dict (200 when it carries no error)."""
    if "error" not in result:
        return 200
    return STATUS_BY_CODE.get(result.get("code", "INTERNAL_ERROR"), 500)
