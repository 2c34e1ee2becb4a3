"""Exceptions raised by kube-stack."""

from typing import Any, Optional


class KubeStackError(Exception):
    """Base class for all kube-stack errors."""

    pass


class ClusterConnectionError(KubeStackError, ConnectionError):
    """Raised when a host has no usable stored credentials."""

    def __init__(self, host: str, message: str):
        self.host = host
        super().__init__(f"{host}: {message}")


class APIError(KubeStackError):
    """
    Raised for a non-2xx API response other than not-found.

    Attributes:
        status: HTTP status code (0 when no response was received)
        body: Response body as returned by the server
        method: HTTP method of the failed request
        path: Request path of the failed request
    """

    def __init__(
        self,
        status: int,
        body: Any = None,
        method: Optional[str] = None,
        path: Optional[str] = None,
    ):
        self.status = status
        self.body = body
        self.method = method
        self.path = path
        request = f"{method} {path}: " if method and path else ""
        super().__init__(f"{request}API error {status}: {body}")


class UnknownKindError(APIError):
    """Raised when the server does not advertise a resource kind."""

    def __init__(self, kind: str, group_version: str):
        self.kind = kind
        self.group_version = group_version
        super().__init__(404, f"kind {kind} is not served by {group_version}")


class ManifestParseError(KubeStackError):
    """Raised when a manifest file cannot be turned into a resource."""

    def __init__(self, path: Any, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


class ApplyError(KubeStackError):
    """Raised when a stack apply is aborted by a failed upsert."""

    def __init__(self, stack: str, host: str, resource: str, cause: Exception):
        self.stack = stack
        self.host = host
        self.resource = resource
        self.cause = cause
        super().__init__(
            f"Failed to apply {resource} of stack {stack} on {host}: {cause}"
        )


class DowngradeError(KubeStackError):
    """Raised when the version installed on the cluster is newer than the release."""

    def __init__(self, current_version: str, requested_version: str):
        self.current_version = current_version
        self.requested_version = requested_version
        super().__init__(
            f"Downgrade not supported: cluster is at {requested_version}, "
            f"this release is {current_version}"
        )


class InvalidVersionError(KubeStackError, ValueError):
    """Raised when a version string is not valid SemVer."""

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"Invalid version: {version!r}")
