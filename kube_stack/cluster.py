"""Per-host Kubernetes API connections."""

import logging
from pathlib import Path
from threading import Lock
from typing import Optional

from kubernetes import config
from kubernetes.client import ApiClient
from kubernetes.config.config_exception import ConfigException

from .config import Settings, get_settings
from .exceptions import ClusterConnectionError
from .models import APIGroupVersion, EntityDescriptor, Host

logger = logging.getLogger(__name__)


class ConnectionPool:
    """
    Caches one connection per (host, apiVersion) for the life of the process.

    Safe to share between threads; population of the cache is serialized.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize connection pool.

        Args:
            settings: Library settings (defaults to the cached global settings)
        """
        self.settings = settings or get_settings()
        self._connections: dict[tuple[str, str], Connection] = {}
        self._lock = Lock()

    def credentials_path(self, host: Host) -> Path:
        """Path of the kubeconfig written for ``host`` at bootstrap."""
        return Path(self.settings.credentials_dir) / host.address

    def config_exists(self, host: Host) -> bool:
        return self.credentials_path(host).exists()

    def connect(self, host: Host, api_version: str = "v1") -> "Connection":
        """
        Get or create the connection for a host and API group version.

        Args:
            host: Target host
            api_version: Group version, ``v1`` for the core group

        Returns:
            Cached Connection instance

        Raises:
            ClusterConnectionError: If no credentials are stored for the host
        """
        key = (host.address, api_version)
        with self._lock:
            connection = self._connections.get(key)
            if connection is None:
                connection = Connection(
                    host,
                    api_version,
                    self._load_client(host),
                    request_timeout=self.settings.request_timeout_seconds,
                )
                self._connections[key] = connection
                logger.info(f"Connected to {host} for {connection.path_prefix}")
            return connection

    def get(self, host: Host, api_version: str = "v1") -> Optional["Connection"]:
        """Return a cached connection without creating one."""
        with self._lock:
            return self._connections.get((host.address, api_version))

    def close_all(self) -> None:
        """Close all cached connections."""
        with self._lock:
            for connection in self._connections.values():
                connection.close()
            self._connections.clear()

    def __len__(self) -> int:
        return len(self._connections)

    def _load_client(self, host: Host) -> ApiClient:
        path = self.credentials_path(host)
        if not path.exists():
            raise ClusterConnectionError(
                str(host), f"no stored credentials at {path}"
            )
        try:
            return config.new_client_from_config(config_file=str(path))
        except ConfigException as e:
            raise ClusterConnectionError(
                str(host), f"invalid credentials at {path}: {e}"
            ) from e


class Connection:
    """A client scoped to one API group version on one host."""

    def __init__(
        self,
        host: Host,
        api_version: str,
        api_client: ApiClient,
        request_timeout: Optional[float] = None,
    ):
        """
        Initialize connection.

        Args:
            host: Target host
            api_version: Group version this connection addresses
            api_client: Configured Kubernetes API client
            request_timeout: Per-request timeout in seconds
        """
        self.host = host
        self.api_version = api_version
        self.group_version = APIGroupVersion.parse(api_version)
        self.request_timeout = request_timeout
        self._api_client: Optional[ApiClient] = api_client
        self._entities: Optional[dict[str, EntityDescriptor]] = None

    @property
    def api_client(self) -> ApiClient:
        """Get ApiClient instance."""
        if not self._api_client:
            raise RuntimeError("Cluster connection is closed")
        return self._api_client

    @property
    def path_prefix(self) -> str:
        return self.group_version.path_prefix

    @property
    def entities(self) -> Optional[dict[str, EntityDescriptor]]:
        """Discovered entities, or None before discovery ran."""
        return self._entities

    @entities.setter
    def entities(self, entities: dict[str, EntityDescriptor]) -> None:
        self._entities = entities

    def invalidate_entities(self) -> None:
        self._entities = None

    def close(self):
        """Close the connection."""
        if self._api_client:
            self._api_client.close()
            self._api_client = None
        self._entities = None

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def __repr__(self) -> str:
        return f"Connection(host={self.host.address!r}, api_version={self.api_version!r})"
