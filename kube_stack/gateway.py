"""Generic create/update/get/delete over discovered REST collections."""

import logging
from typing import Optional, Union

from .cluster import Connection, ConnectionPool
from .config import Settings, get_settings
from .discovery import APIDiscovery
from .exceptions import APIError
from .models import APIGroupVersion, EntityDescriptor, Host, Resource
from .transport import ApiResult, ApiTransport

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"

FOREGROUND_DELETE = {
    "kind": "DeleteOptions",
    "apiVersion": "v1",
    "propagationPolicy": "Foreground",
}


class APIGateway:
    """
    Kind-agnostic access to the API objects of any served group version.

    Collection names are resolved through discovery, so custom resources are
    handled exactly like built-in kinds.
    """

    def __init__(
        self,
        pool: Optional[ConnectionPool] = None,
        settings: Optional[Settings] = None,
        transport: Optional[ApiTransport] = None,
        discovery: Optional[APIDiscovery] = None,
    ):
        """
        Initialize gateway.

        Args:
            pool: Connection pool (a new one is created if omitted)
            settings: Library settings
            transport: Request transport
            discovery: Kind discovery
        """
        if settings is None:
            settings = pool.settings if pool is not None else get_settings()
        self.settings = settings
        self.pool = pool if pool is not None else ConnectionPool(self.settings)
        self.transport = transport or ApiTransport(self.settings)
        self.discovery = discovery or APIDiscovery(self.pool, self.transport)

    def connection(self, host: Host, api_version: str = "v1") -> Connection:
        return self.pool.connect(host, api_version)

    def _locate(self, host: Host, resource: Resource) -> tuple[Connection, EntityDescriptor]:
        connection = self.connection(host, resource.api_version)
        return connection, self.discovery.entity_for(connection, resource.kind)

    @staticmethod
    def _collection_path(
        connection: Connection, entity: EntityDescriptor, namespace: Optional[str]
    ) -> str:
        if entity.namespaced:
            return (
                f"{connection.path_prefix}/namespaces/{namespace or DEFAULT_NAMESPACE}"
                f"/{entity.resource_name}"
            )
        return f"{connection.path_prefix}/{entity.resource_name}"

    def _object_path(
        self, connection: Connection, entity: EntityDescriptor, resource: Resource
    ) -> str:
        collection = self._collection_path(connection, entity, resource.metadata.namespace)
        return f"{collection}/{resource.metadata.name}"

    @staticmethod
    def _to_resource(result: ApiResult, fallback: Resource) -> Resource:
        if isinstance(result.data, dict) and result.data.get("metadata"):
            data = dict(result.data)
            data.setdefault("apiVersion", fallback.api_version)
            data.setdefault("kind", fallback.kind)
            return Resource.from_dict(data)
        return fallback

    def get(self, host: Host, resource: Resource) -> ApiResult:
        """
        Read the server-side state of a resource.

        Returns:
            ApiResult holding a Resource, or a not-found result
        """
        connection, entity = self._locate(host, resource)
        result = self.transport.request(
            connection, "GET", self._object_path(connection, entity, resource)
        )
        if result.not_found:
            return result
        return ApiResult.success(self._to_resource(result, resource))

    def create(self, host: Host, resource: Resource) -> Resource:
        """
        Create a resource.

        Raises:
            APIError: If creation fails, including a missing target namespace
        """
        connection, entity = self._locate(host, resource)
        path = self._collection_path(connection, entity, resource.metadata.namespace)
        result = self.transport.request(connection, "POST", path, body=resource.to_dict())
        if result.not_found:
            raise APIError(404, f"collection {path} not found", method="POST", path=path)
        logger.info(f"Created {resource.describe()} on {host}")
        return self._to_resource(result, resource)

    def update(self, host: Host, resource: Resource) -> ApiResult:
        """
        Replace an existing resource.

        Returns:
            ApiResult holding the updated Resource, or a not-found result
        """
        connection, entity = self._locate(host, resource)
        result = self.transport.request(
            connection,
            "PUT",
            self._object_path(connection, entity, resource),
            body=resource.to_dict(),
        )
        if result.not_found:
            return result
        logger.info(f"Updated {resource.describe()} on {host}")
        return ApiResult.success(self._to_resource(result, resource))

    def upsert(self, host: Host, resource: Resource) -> Resource:
        """
        Update a resource, creating it if it does not exist yet.

        Args:
            host: Target host
            resource: Resource to apply

        Returns:
            Resource as returned by the server

        Raises:
            APIError: If the update or create fails
        """
        result = self.update(host, resource)
        if result.not_found:
            return self.create(host, resource)
        return result.data

    def delete(self, host: Host, resource: Resource) -> bool:
        """
        Delete a resource with foreground propagation.

        A resource carrying a selfLink is deleted through it directly. Otherwise
        the object is looked up first and then deleted by collection path.

        Returns:
            True if deleted, False if it was already absent

        Raises:
            APIError: If deletion fails
        """
        connection = self.connection(host, resource.api_version)
        if resource.metadata.self_link:
            result = self.transport.request(connection, "DELETE", resource.metadata.self_link)
        else:
            entity = self.discovery.entity_for(connection, resource.kind)
            path = self._object_path(connection, entity, resource)
            result = self.transport.request(connection, "GET", path)
            if result.ok:
                result = self.transport.request(
                    connection, "DELETE", path, body=dict(FOREGROUND_DELETE)
                )

        if result.not_found:
            logger.debug(f"{resource.describe()} already absent on {host}")
            return False
        logger.info(f"Deleted {resource.describe()} on {host}")
        return True

    def list_by_label(
        self,
        host: Host,
        group_version: Union[APIGroupVersion, str],
        entity: EntityDescriptor,
        label_selector: str,
    ) -> list[Resource]:
        """
        List objects of one entity across all namespaces by label selector.

        Args:
            host: Target host
            group_version: Group version serving the entity
            entity: Entity to list
            label_selector: Label selector string (e.g., "app=web")

        Returns:
            List of Resource with apiVersion and kind filled in
        """
        if isinstance(group_version, str):
            group_version = APIGroupVersion.parse(group_version)
        connection = self.connection(host, group_version.group_version)
        result = self.transport.request(
            connection,
            "GET",
            f"{connection.path_prefix}/{entity.resource_name}",
            query=[("labelSelector", label_selector)],
        )
        if result.not_found:
            return []

        resources = []
        for item in (result.data or {}).get("items") or []:
            item = dict(item)
            item["apiVersion"] = group_version.group_version
            item["kind"] = entity.kind
            resources.append(Resource.from_dict(item))
        return resources
