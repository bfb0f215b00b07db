"""Error taxonomy for appliance operations.

Every error raised by the core derives from RbkError so frontends can catch
one type and still branch on the precise failure when they need to.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from rbkops.core.jobs import JobHandle, JobStatus


class RbkError(RuntimeError):
    """Base class for all rbkops errors."""


class UnsupportedVersion(RbkError):
    """Raised when an API version (or a resource in that version) is unknown."""


class RouteNotFound(RbkError):
    """Raised when the appliance reports an unroutable endpoint."""

    def __init__(self, uri: str, version: str | None = None):
        self.uri = uri
        self.version = version
        hint = f" in API version {version}" if version else ""
        super().__init__(
            f"Route not found: {uri}. The endpoint may not exist{hint}; "
            "check --api-version against the appliance release."
        )


class InvalidReference(RbkError):
    """Raised when the appliance rejects a managed-object identifier."""

    def __init__(self, uri: str, message: str | None = None):
        self.uri = uri
        self.message = message
        detail = f" ({message})" if message else ""
        super().__init__(
            f"Invalid object reference for {uri}{detail}. "
            "Check the object id and that the API version matches the endpoint."
        )


class ApplianceError(RbkError):
    """Structured error body returned by the appliance."""

    def __init__(
        self,
        error_type: str | None = None,
        message: str | None = None,
        cause: Any = None,
        *,
        status: int | None = None,
    ):
        self.error_type = error_type
        self.message = message
        self.cause = cause
        self.status = status
        parts = [p for p in (error_type, message) if p]
        super().__init__(": ".join(parts) or f"Appliance error (HTTP {status})")


class UnknownTransportError(RbkError):
    """HTTP failure that could not be classified any further."""

    def __init__(self, status: int, text: str = ""):
        self.status = status
        self.text = text
        super().__init__(f"HTTP {status}: {text[:200]}" if text else f"HTTP {status}")


class PayloadTooLarge(RbkError):
    """Raised when a response body exceeds the client's hard size ceiling."""

    def __init__(self, uri: str, limit: int):
        self.uri = uri
        self.limit = limit
        super().__init__(f"Response from {uri} exceeds {limit} bytes")


class JobFailed(RbkError):
    """Raised when an asynchronous job reaches a non-success terminal status."""

    def __init__(self, status: JobStatus, handle: JobHandle, error: Any = None):
        self.status = status
        self.handle = handle
        self.error = error
        detail = f": {error}" if error else ""
        super().__init__(f"Job {handle.id} finished with status {status.value}{detail}")


class JobTimeout(RbkError):
    """Raised when a job does not reach a terminal status before the deadline."""

    def __init__(self, handle: JobHandle, timeout: float, last_status: JobStatus):
        self.handle = handle
        self.timeout = timeout
        self.last_status = last_status
        super().__init__(
            f"Job {handle.id} still {last_status.value} after {timeout:g}s"
        )


class ArtifactNotFound(RbkError):
    """Raised when a recovery artifact path does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Recovery artifact not found: {path}")


class ObjectNotFound(RbkError):
    """Raised when a named object (VM, snapshot, mount) cannot be resolved."""


class OperationCancelled(RbkError):
    """Raised when a mutating call is declined or a wait is cancelled."""
