"""
Error kinds raised by the object gateway.

Every error carries a stable `kind` so callers (and the HTTP layer) can
branch on it programmatically instead of matching message text.
Validation errors are raised before the backend is contacted.
"""

from typing import Any, Optional


class GatewayError(Exception):
    """Base class for all gateway failures."""

    kind = "gateway_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Structured form used by logs and API responses."""
        return {"kind": self.kind, "message": self.message}


class MissingContent(GatewayError):
    """Raised when there is nothing to upload or no key to act on."""

    kind = "missing_content"

    def __init__(self, message: str = "No file provided") -> None:
        super().__init__(message)


class PolicyViolation(GatewayError):
    """
    Raised when a request breaks its tier policy.

    `field` names what was wrong (content_type, size, owner_id, offset)
    and `limit` is the bound or allow-set it was checked against.
    """

    kind = "policy_violation"

    def __init__(
        self,
        field: str,
        limit: Any = None,
        reason: Optional[str] = None,
    ) -> None:
        self.field = field
        self.limit = limit
        self.reason = reason or f"Invalid {field}"
        super().__init__(self.reason)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        limit = self.limit
        if isinstance(limit, (set, frozenset, tuple)):
            limit = sorted(limit)
        data["limit"] = limit
        return data


class InvalidExpiry(GatewayError):
    """Raised when a signed-access lifetime is not a positive integer."""

    kind = "invalid_expiry"

    def __init__(self, expiry: Any) -> None:
        self.expiry = expiry
        super().__init__(f"Expiry must be a positive number of seconds, got {expiry!r}")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["expiry"] = self.expiry if isinstance(self.expiry, int) else repr(self.expiry)
        return data


class BackendError(GatewayError):
    """
    Raised when the storage backend fails.

    The underlying exception is kept in `cause` (and chained) so nothing
    the backend reported is lost on the way to the caller.
    """

    kind = "backend_error"

    def __init__(
        self,
        message: str,
        *,
        cause: Optional[BaseException] = None,
        operation: Optional[str] = None,
        bucket: Optional[str] = None,
        key: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.cause = cause
        self.operation = operation
        self.bucket = bucket
        self.key = key

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "operation": self.operation,
            "bucket": self.bucket,
            "key": self.key,
            "cause": str(self.cause) if self.cause else None,
        })
        return data


class UnrecognizedFormat(GatewayError):
    """Raised when a locator is not a public locator this gateway issued."""

    kind = "unrecognized_format"

    def __init__(self, locator: Any, message: str = "Invalid public locator format") -> None:
        self.locator = locator
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["locator"] = self.locator if isinstance(self.locator, str) else repr(self.locator)
        return data
