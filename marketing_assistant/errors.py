from __future__ import annotations

from typing import Any, Optional


class AssistantError(Exception):
    """Base class for failures the assistant recovers from at a known scope."""

    code = "assistant_error"

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": type(self).__name__, "code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ToolValidationError(AssistantError, ValueError):
    code = "validation_error"


class NotFoundError(AssistantError, LookupError):
    code = "not_found"


class StoreError(AssistantError, RuntimeError):
    code = "store_error"


class OracleError(AssistantError, RuntimeError):
    code = "oracle_unavailable"


class RateLimitError(AssistantError):
    code = "rate_limited"

    def __init__(self, message: str, *, retry_after: int, limit_type: str) -> None:
        super().__init__(message, details={"retryAfter": retry_after, "limitType": limit_type})
        self.retry_after = retry_after
        self.limit_type = limit_type
