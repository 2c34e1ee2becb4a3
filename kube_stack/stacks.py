"""Declarative stack reconciliation: apply every manifest, then prune orphans."""

import logging
from typing import Any, Optional

from .discovery import APIDiscovery
from .exceptions import APIError, ApplyError
from .gateway import APIGateway
from .manifests import ManifestSource
from .models import STACK_LABEL, Host, Resource, StackRun

logger = logging.getLogger(__name__)


class StackReconciler:
    """
    Converges the objects of a named stack on a host to its current manifests.

    Stack membership lives only on the server: every applied object carries the
    stack label and the checksum of the run that last applied it. Objects with
    the stack label but another checksum were dropped from the manifests and
    are pruned.

    Applies to the same (host, stack) must be serialized by the caller; a
    concurrent run would prune the other run's objects.
    """

    def __init__(
        self,
        gateway: Optional[APIGateway] = None,
        manifests: Optional[ManifestSource] = None,
        discovery: Optional[APIDiscovery] = None,
    ):
        """
        Initialize stack reconciler.

        Args:
            gateway: API gateway (a new one is created if omitted)
            manifests: Manifest source (defaults to the configured resources dir)
            discovery: Kind discovery (defaults to the gateway's)
        """
        self.gateway = gateway or APIGateway()
        self.manifests = manifests or ManifestSource(settings=self.gateway.settings)
        self.discovery = discovery or self.gateway.discovery

    def apply(
        self, host: Host, stack: str, vars: Optional[dict[str, Any]] = None
    ) -> list[Resource]:
        """
        Apply a stack and prune objects no longer declared in it.

        Manifests are applied one by one in path order. A failed upsert aborts
        the run before pruning; objects applied so far stay in place and a
        re-run repairs the stack.

        Args:
            host: Target host
            stack: Stack name
            vars: Template variables passed to the manifest renderer

        Returns:
            Applied resources, in apply order

        Raises:
            ManifestParseError: If a manifest is malformed
            ApplyError: If a resource cannot be applied
        """
        run = StackRun.start(stack)
        logger.info(f"Applying stack {stack} on {host}")

        resources = []
        for path in self.manifests.resource_files(stack):
            resource = self.manifests.parse_resource_file(path, vars)
            resource.stamp(run.stack, run.checksum)
            try:
                self.gateway.upsert(host, resource)
            except APIError as e:
                raise ApplyError(stack, str(host), resource.describe(), e) from e
            logger.info(f"Applied {resource.describe()} for stack {stack} on {host}")
            resources.append(resource)

        self.prune(host, stack, run.checksum)
        return resources

    def prune(self, host: Host, stack: str, checksum: str) -> list[Resource]:
        """
        Delete stack objects that the run identified by ``checksum`` did not apply.

        Every listable kind of every served group version is searched, so
        objects of any kind, custom resources included, are found.

        Args:
            host: Target host
            stack: Stack name
            checksum: Checksum of the current run

        Returns:
            Resources deleted by this prune; objects already gone are left out

        Raises:
            APIError: If listing or deleting fails
        """
        selector = f"{STACK_LABEL}={stack}"
        pruned = []
        for group_version in self.discovery.list_groups(host):
            connection = self.gateway.connection(host, group_version.group_version)
            for entity in self.discovery.list_entities(connection).values():
                if not entity.listable:
                    continue
                objects = self.gateway.list_by_label(host, group_version, entity, selector)
                for obj in objects:
                    if obj.checksum == checksum:
                        continue
                    if not self.gateway.delete(host, obj):
                        continue
                    logger.info(f"Pruned {obj.describe()} from stack {stack} on {host}")
                    pruned.append(obj)

        if pruned:
            logger.info(f"Pruned {len(pruned)} objects from stack {stack} on {host}")
        return pruned
