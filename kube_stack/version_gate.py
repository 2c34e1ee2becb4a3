"""Upgrade safety gate for cluster re-ups."""

import logging
from collections.abc import Iterator, MutableMapping
from threading import Lock
from typing import Any, Optional

from easysemver import Version

from .exceptions import DowngradeError, InvalidVersionError

logger = logging.getLogger(__name__)

UNSAFE_UPGRADE = "unsafe_upgrade"


class ClusterContext(MutableMapping):
    """
    Run-scoped key/value state shared across phases and hosts.

    Thread-safe for concurrent phases.
    """

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, Any] = dict(initial or {})
        self._lock = Lock()

    def __getitem__(self, key: str) -> Any:
        with self._lock:
            return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def __delitem__(self, key: str) -> None:
        with self._lock:
            del self._data[key]

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._data))

    def __len__(self) -> int:
        return len(self._data)

    def flag_unsafe_upgrade(self) -> None:
        self[UNSAFE_UPGRADE] = True

    @property
    def unsafe_upgrade(self) -> bool:
        return bool(self.get(UNSAFE_UPGRADE, False))


def parse_version(version: str) -> Version:
    """
    Parse a SemVer string.

    Raises:
        InvalidVersionError: If the string is not valid SemVer
    """
    try:
        return Version(version)
    except (TypeError, ValueError) as e:
        raise InvalidVersionError(version) from e


class VersionGate:
    """
    Decides whether re-applying a release over a cluster is safe.

    Re-ups within the same major.minor line (patch releases and prereleases)
    pass silently. Moving the cluster to a newer minor or major line passes
    but sets ``unsafe_upgrade`` in the cluster context. Moving it backwards is
    rejected. The flag is only ever set, never cleared, so several hosts can
    share one context.
    """

    def __init__(self, cluster_context: MutableMapping):
        """
        Initialize version gate.

        Args:
            cluster_context: Shared cluster context (a ClusterContext or plain dict)
        """
        self.cluster_context = cluster_context

    def validate(self, current_version: str, requested_version: str) -> bool:
        """
        Validate a re-up of the cluster.

        Args:
            current_version: Version of the release performing this run (the
                target of the re-up)
            requested_version: Version the cluster currently reports as
                installed (the starting point of the re-up)

        Returns:
            True if the upgrade was flagged unsafe, False otherwise

        Raises:
            DowngradeError: If the installed version is newer than the release
            InvalidVersionError: If either version is not valid SemVer
        """
        current = parse_version(current_version)
        requested = parse_version(requested_version)

        if requested == current:
            logger.debug(f"Cluster already at release {current_version}, re-up")
            return False

        if requested > current:
            raise DowngradeError(current_version, requested_version)

        if current.major != requested.major or current.minor != requested.minor:
            logger.warning(
                f"Cluster at {requested_version} upgrading to release {current_version} "
                f"crosses a minor release boundary"
            )
            self._flag_unsafe()
            return True

        logger.info(
            f"Cluster at {requested_version} upgrading to release {current_version} (patch level)"
        )
        return False

    def _flag_unsafe(self) -> None:
        if isinstance(self.cluster_context, ClusterContext):
            self.cluster_context.flag_unsafe_upgrade()
        else:
            self.cluster_context[UNSAFE_UPGRADE] = True


def validate_hosts(
    gate: VersionGate,
    current_version: str,
    host_versions: dict[str, Optional[str]],
) -> bool:
    """
    Validate every host of a multi-host run.

    Hosts reporting no version (fresh installs) are skipped. The first
    downgrade halts validation.

    Args:
        gate: Version gate bound to the run's cluster context
        current_version: Version of the release performing the run
        host_versions: Installed version per host address

    Returns:
        True if any host was flagged unsafe

    Raises:
        DowngradeError: If any host is newer than the release
    """
    flagged = False
    for host, installed in host_versions.items():
        if not installed:
            logger.debug(f"{host} has no installed version, skipping")
            continue
        flagged = gate.validate(current_version, installed) or flagged
    return flagged
