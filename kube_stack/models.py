"""Resource and cluster models for kube-stack."""

import secrets
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

STACK_LABEL = "kube-stack.io/stack"
STACK_CHECKSUM = "kube-stack.io/stack-checksum"


class Host(BaseModel):
    """A cluster host whose API server credentials were written at bootstrap."""

    address: str = Field(..., min_length=1, description="Credential lookup key")
    role: str = "master"
    name: Optional[str] = None
    labels: dict[str, str] = Field(default_factory=dict)

    def __str__(self) -> str:
        return self.name or self.address


class ObjectMeta(BaseModel):
    """Object metadata. Fields the core does not use are kept as extras."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    namespace: Optional[str] = None
    labels: Optional[dict[str, str]] = None
    annotations: Optional[dict[str, str]] = None
    self_link: Optional[str] = Field(default=None, alias="selfLink")


class Resource(BaseModel):
    """
    Kind-agnostic API object.

    Only apiVersion, kind and metadata are interpreted; every other top-level
    key of the manifest is carried untouched in ``payload``.
    """

    model_config = ConfigDict(populate_by_name=True)

    api_version: str = Field(..., alias="apiVersion")
    kind: str
    metadata: ObjectMeta
    payload: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Resource":
        """
        Build a resource from its wire representation.

        Args:
            data: Manifest or API response object

        Returns:
            Resource instance
        """
        payload = {
            key: value
            for key, value in data.items()
            if key not in ("apiVersion", "kind", "metadata")
        }
        return cls(
            api_version=data.get("apiVersion"),
            kind=data.get("kind"),
            metadata=ObjectMeta.model_validate(data.get("metadata") or {}),
            payload=payload,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation of the resource."""
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": self.metadata.model_dump(by_alias=True, exclude_none=True),
            **self.payload,
        }

    @property
    def group(self) -> str:
        """API group, empty for the core group."""
        if "/" not in self.api_version:
            return ""
        return self.api_version.split("/", 1)[0]

    @property
    def version(self) -> str:
        return self.api_version.rsplit("/", 1)[-1]

    @property
    def identity(self) -> tuple[str, str, Optional[str], str]:
        return (self.api_version, self.kind, self.metadata.namespace, self.metadata.name)

    @property
    def checksum(self) -> Optional[str]:
        """Stack checksum annotation, or None when the object carries none."""
        if not self.metadata.annotations:
            return None
        return self.metadata.annotations.get(STACK_CHECKSUM)

    def describe(self) -> str:
        """Human readable identity, e.g. ``Deployment kube-system/coredns``."""
        if self.metadata.namespace:
            return f"{self.kind} {self.metadata.namespace}/{self.metadata.name}"
        return f"{self.kind} {self.metadata.name}"

    def stamp(self, stack: str, checksum: str) -> None:
        """Mark the resource as a member of ``stack`` confirmed by ``checksum``."""
        if self.metadata.labels is None:
            self.metadata.labels = {}
        if self.metadata.annotations is None:
            self.metadata.annotations = {}
        self.metadata.labels[STACK_LABEL] = stack
        self.metadata.annotations[STACK_CHECKSUM] = checksum


@dataclass(frozen=True)
class StackRun:
    """A single apply invocation of a stack."""

    stack: str
    checksum: str

    @classmethod
    def start(cls, stack: str) -> "StackRun":
        return cls(stack=stack, checksum=secrets.token_hex(16))


@dataclass(frozen=True)
class APIGroupVersion:
    """A served (group, preferred version) pair."""

    group: str
    version: str

    @classmethod
    def parse(cls, group_version: str) -> "APIGroupVersion":
        if "/" in group_version:
            group, version = group_version.split("/", 1)
            return cls(group=group, version=version)
        return cls(group="", version=group_version)

    @property
    def is_core(self) -> bool:
        return self.group == ""

    @property
    def group_version(self) -> str:
        if self.is_core:
            return self.version
        return f"{self.group}/{self.version}"

    @property
    def path_prefix(self) -> str:
        """REST path prefix, ``/api/v1`` for the core group."""
        if self.is_core:
            return f"/api/{self.version}"
        return f"/apis/{self.group}/{self.version}"


@dataclass(frozen=True)
class EntityDescriptor:
    """Discovered mapping of a kind to its REST collection."""

    kind: str
    resource_name: str
    namespaced: bool
    group_version: str
    verbs: tuple[str, ...] = field(default_factory=tuple)

    @property
    def listable(self) -> bool:
        return "list" in self.verbs
