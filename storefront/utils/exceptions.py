"""Error taxonomy for the interaction service

Every error carries the HTTP status it is rendered with, so routers can
let them propagate and rely on the application exception handler.
"""

from typing import Any, Dict, Iterable, List, Optional

_REQUEST_PARTS = ("body", "query", "path", "header", "cookie")


class StorefrontError(Exception):
    """Base exception for storefront errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code for API responses
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class ValidationError(StorefrontError):
    """Raised when input is malformed or missing required fields.

    Details are a list with one {field, message} entry per offending field.
    """

    def __init__(self, message: str = "Invalid input", details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message=message, status_code=400)
        self.details = details or []

    @classmethod
    def from_errors(cls, errors: Iterable[Dict[str, Any]]) -> "ValidationError":
        """Build from pydantic error dicts, dropping the request-part prefix of each location."""
        details = []
        for error in errors:
            location = [str(part) for part in error.get("loc", ()) if part not in _REQUEST_PARTS]
            details.append({
                "field": ".".join(location) or None,
                "message": error.get("msg"),
            })
        return cls(details=details)


class NotFoundError(StorefrontError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            message=f"{entity} not found",
            status_code=404,
            details={"entity": entity.lower(), "id": entity_id},
        )


class ConstraintViolation(StorefrontError):
    """Raised when a concurrent writer won the race for the same record.

    Recovered by the record store; never rendered to a client.
    """

    def __init__(self, user_id: str, product_id: str, error: Exception):
        super().__init__(
            message=f"Concurrent write for user '{user_id}' and product '{product_id}'",
            status_code=409,
            details={
                "user_id": user_id,
                "product_id": product_id,
                "error_type": type(error).__name__,
            },
        )


class ServerError(StorefrontError):
    """Raised when storage fails or an unexpected error occurs."""

    def __init__(self, message: str = "Server error", error: Optional[Exception] = None):
        details = {}
        if error is not None:
            details = {"error": str(error), "error_type": type(error).__name__}
        super().__init__(message=message, status_code=500, details=details)


class UpstreamError(StorefrontError):
    """Raised when the recommendation scoring service reports a failure."""

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(
            message=message,
            status_code=502,
            details={"upstream_status": upstream_status} if upstream_status else {},
        )
