"""kube-stack - Stack reconciliation and upgrade gating for Kubernetes clusters."""

from .cluster import Connection, ConnectionPool
from .config import Settings, get_settings
from .discovery import APIDiscovery, underscore_entity
from .exceptions import (
    APIError,
    ApplyError,
    ClusterConnectionError,
    DowngradeError,
    InvalidVersionError,
    KubeStackError,
    ManifestParseError,
    UnknownKindError,
)
from .gateway import APIGateway
from .manifests import ManifestSource
from .models import (
    STACK_CHECKSUM,
    STACK_LABEL,
    APIGroupVersion,
    EntityDescriptor,
    Host,
    ObjectMeta,
    Resource,
    StackRun,
)
from .stacks import StackReconciler
from .transport import ApiResult, ApiTransport, ResultStatus
from .version_gate import UNSAFE_UPGRADE, ClusterContext, VersionGate, validate_hosts

__version__ = "0.1.0"

__all__ = [
    # Connections
    "ConnectionPool",
    "Connection",
    # Discovery and API access
    "APIDiscovery",
    "APIGateway",
    "ApiTransport",
    "ApiResult",
    "ResultStatus",
    "underscore_entity",
    # Stacks
    "StackReconciler",
    "ManifestSource",
    # Version gate
    "VersionGate",
    "ClusterContext",
    "validate_hosts",
    "UNSAFE_UPGRADE",
    # Models
    "Host",
    "Resource",
    "ObjectMeta",
    "StackRun",
    "APIGroupVersion",
    "EntityDescriptor",
    "STACK_LABEL",
    "STACK_CHECKSUM",
    # Configuration
    "Settings",
    "get_settings",
    # Exceptions
    "KubeStackError",
    "ClusterConnectionError",
    "APIError",
    "UnknownKindError",
    "ManifestParseError",
    "ApplyError",
    "DowngradeError",
    "InvalidVersionError",
]
