"""HTTP transport to the Kubernetes API with bounded timeouts and retries."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from kubernetes.client.exceptions import ApiException
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from urllib3.exceptions import HTTPError

from .cluster import Connection
from .config import Settings, get_settings
from .exceptions import APIError, ClusterConnectionError

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})

# Methods resent after a transient failure; POST may already have been committed
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "PUT", "DELETE"})

JSON_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


class ResultStatus(str, Enum):
    """Outcome of an API request."""

    OK = "ok"
    NOT_FOUND = "not_found"


@dataclass
class ApiResult:
    """Result of an API request; not-found is an expected outcome, not an error."""

    status: ResultStatus
    data: Any = None

    @classmethod
    def success(cls, data: Any = None) -> "ApiResult":
        return cls(status=ResultStatus.OK, data=data)

    @classmethod
    def missing(cls) -> "ApiResult":
        return cls(status=ResultStatus.NOT_FOUND)

    @property
    def ok(self) -> bool:
        return self.status == ResultStatus.OK

    @property
    def not_found(self) -> bool:
        return self.status == ResultStatus.NOT_FOUND


def _is_transient(error: BaseException) -> bool:
    if isinstance(error, ApiException):
        return error.status in RETRYABLE_STATUSES
    return isinstance(error, HTTPError)


class ApiTransport:
    """
    Issues raw REST requests through a connection's ApiClient.

    Transient failures (throttling, 5xx, broken connections) of idempotent
    requests are retried with exponential backoff. Creates are sent once.
    Every request carries the connection's timeout.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize transport.

        Args:
            settings: Library settings (defaults to the cached global settings)
        """
        self.settings = settings or get_settings()

    def _retrying(self, method: str) -> Retrying:
        attempts = self.settings.retry_attempts if method in IDEMPOTENT_METHODS else 1
        return Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self.settings.retry_wait_min_seconds,
                max=self.settings.retry_wait_max_seconds,
            ),
            retry=retry_if_exception(_is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def request(
        self,
        connection: Connection,
        method: str,
        path: str,
        query: Optional[list[tuple[str, str]]] = None,
        body: Any = None,
    ) -> ApiResult:
        """
        Perform a request.

        Args:
            connection: Connection to the target host
            method: HTTP method
            path: Absolute request path, e.g. ``/apis/apps/v1/deployments``
            query: Query parameters
            body: JSON-serializable request body

        Returns:
            ApiResult with the decoded response, or a not-found result on 404

        Raises:
            APIError: For any other non-2xx response
            ClusterConnectionError: If the server cannot be reached
        """
        logger.debug(f"{method} {path} on {connection.host}")
        try:
            data = self._retrying(method)(
                connection.api_client.call_api,
                path,
                method,
                query_params=query or [],
                header_params=dict(JSON_HEADERS),
                body=body,
                response_type="object",
                auth_settings=["BearerToken"],
                _return_http_data_only=True,
                _preload_content=True,
                _request_timeout=connection.request_timeout,
            )
        except ApiException as e:
            if e.status == 404:
                return ApiResult.missing()
            raise APIError(e.status, e.body, method=method, path=path) from e
        except HTTPError as e:
            raise ClusterConnectionError(
                str(connection.host), f"{method} {path} failed: {e}"
            ) from e
        return ApiResult.success(data)
