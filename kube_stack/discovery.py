"""API group and resource kind discovery."""

import logging
import re
from typing import Any, Optional

from .cluster import Connection, ConnectionPool
from .exceptions import APIError, UnknownKindError
from .models import APIGroupVersion, EntityDescriptor, Host
from .transport import ApiTransport

logger = logging.getLogger(__name__)

# Kinds ending in this suffix are request/response types, never stored objects
REVIEW_SUFFIX = "_review"

_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")


def underscore_entity(kind: str) -> str:
    """
    Convert a kind to its underscored entity type.

    ``ClusterRoleBinding`` becomes ``cluster_role_binding`` and ``APIService``
    becomes ``api_service``.
    """
    name = _ACRONYM_BOUNDARY.sub(r"\1_\2", kind)
    return _WORD_BOUNDARY.sub(r"\1_\2", name).lower()


class APIDiscovery:
    """Resolves which group versions and kinds a host's API server serves."""

    def __init__(self, pool: ConnectionPool, transport: Optional[ApiTransport] = None):
        """
        Initialize discovery.

        Args:
            pool: Connection pool
            transport: Request transport (created from the pool's settings if omitted)
        """
        self.pool = pool
        self.transport = transport or ApiTransport(pool.settings)

    def _discover(self, connection: Connection, path: str) -> dict[str, Any]:
        result = self.transport.request(connection, "GET", path)
        if result.not_found:
            raise APIError(404, f"discovery endpoint {path} not served", method="GET", path=path)
        return result.data or {}

    def list_groups(self, host: Host) -> list[APIGroupVersion]:
        """
        List every served group with its preferred version.

        The core group is reported as ``v1``; named groups follow in server order.

        Args:
            host: Target host

        Returns:
            List of APIGroupVersion
        """
        connection = self.pool.connect(host, "v1")
        groups = [
            APIGroupVersion(group="", version=version)
            for version in self._discover(connection, "/api").get("versions", [])
        ]
        for group in self._discover(connection, "/apis").get("groups", []):
            preferred = group.get("preferredVersion") or {}
            if preferred.get("groupVersion"):
                groups.append(APIGroupVersion.parse(preferred["groupVersion"]))
        logger.debug(f"Discovered {len(groups)} API group versions on {host}")
        return groups

    def list_entities(self, connection: Connection) -> dict[str, EntityDescriptor]:
        """
        List the stored resource kinds of the connection's group version.

        Subresources and review kinds are skipped. The result is cached on the
        connection.

        Args:
            connection: Connection scoped to a group version

        Returns:
            Mapping of underscored kind to EntityDescriptor
        """
        if connection.entities is not None:
            return connection.entities

        entities: dict[str, EntityDescriptor] = {}
        resources = self._discover(connection, connection.path_prefix).get("resources", [])
        for resource in resources:
            name = resource.get("name", "")
            if not name or "/" in name:
                continue
            entity_type = underscore_entity(resource["kind"])
            if entity_type.endswith(REVIEW_SUFFIX):
                continue
            entities[entity_type] = EntityDescriptor(
                kind=resource["kind"],
                resource_name=name,
                namespaced=bool(resource.get("namespaced", False)),
                group_version=connection.api_version,
                verbs=tuple(resource.get("verbs") or ()),
            )

        logger.debug(
            f"Discovered {len(entities)} entities for {connection.api_version} on {connection.host}"
        )
        connection.entities = entities
        return entities

    def entity_for(self, connection: Connection, kind: str) -> EntityDescriptor:
        """
        Resolve the entity descriptor of a kind.

        A kind missing from the cached discovery triggers one rediscovery, so
        kinds registered earlier in the same run (custom resource definitions)
        are found.

        Raises:
            UnknownKindError: If the server does not serve the kind
        """
        entity_type = underscore_entity(kind)
        entity = self.list_entities(connection).get(entity_type)
        if entity is None:
            connection.invalidate_entities()
            entity = self.list_entities(connection).get(entity_type)
        if entity is None:
            raise UnknownKindError(kind, connection.api_version)
        return entity
