"""Pytest configuration and fixtures for kube-stack tests."""

import copy
import json
from pathlib import Path
from typing import Any, Optional
from unittest.mock import patch

import pytest
import yaml
from kubernetes.client.exceptions import ApiException

from kube_stack import ConnectionPool, Host, Settings


class FakeApiServer:
    """
    In-memory stand-in for ``ApiClient`` serving discovery and object CRUD.

    Only ``call_api`` and ``close`` are implemented; requests are recorded in
    ``calls`` as ``(method, path, query, body)`` tuples.
    """

    def __init__(self):
        self.kinds: dict[str, list[dict[str, Any]]] = {}
        self.objects: dict[tuple[str, str, Optional[str], str], dict[str, Any]] = {}
        self.calls: list[tuple[str, str, list, Any]] = []
        self.failures: dict[tuple[str, str], int] = {}
        self.closed = False

    def register_kind(
        self,
        group_version: str,
        kind: str,
        plural: str,
        namespaced: bool = True,
        verbs: tuple[str, ...] = ("create", "delete", "get", "list", "update"),
    ) -> None:
        self.kinds.setdefault(group_version, []).append(
            {"name": plural, "kind": kind, "namespaced": namespaced, "verbs": list(verbs)}
        )

    def seed(self, group_version: str, plural: str, obj: dict[str, Any]) -> None:
        """Store an object directly, bypassing the API."""
        metadata = obj["metadata"]
        key = (group_version, plural, metadata.get("namespace"), metadata["name"])
        self.objects[key] = copy.deepcopy(obj)

    def find(self, kind: str, name: str) -> Optional[dict[str, Any]]:
        for obj in self.objects.values():
            if obj.get("kind") == kind and obj["metadata"]["name"] == name:
                return obj
        return None

    def names(self) -> set[str]:
        return {key[3] for key in self.objects}

    def requests(self, method: str) -> list[tuple[str, str, list, Any]]:
        return [call for call in self.calls if call[0] == method]

    def close(self):
        self.closed = True

    @staticmethod
    def _error(status: int, message: str = "") -> ApiException:
        error = ApiException(status=status, reason=message or "error")
        error.body = json.dumps({"kind": "Status", "code": status, "message": message})
        return error

    def _split(self, path: str) -> tuple[Optional[str], list[str]]:
        parts = path.strip("/").split("/")
        if parts[0] == "api":
            return (parts[1] if len(parts) > 1 else None), parts[2:]
        if parts[0] == "apis":
            if len(parts) < 3:
                return None, []
            return f"{parts[1]}/{parts[2]}", parts[3:]
        raise self._error(404, f"unknown path {path}")

    def _kind_for(self, group_version: str, plural: str) -> dict[str, Any]:
        for kind in self.kinds.get(group_version, []):
            if kind["name"] == plural:
                return kind
        raise self._error(404, f"{plural} not served by {group_version}")

    def call_api(self, resource_path, method, query_params=None, body=None, **kwargs):
        self.calls.append((method, resource_path, list(query_params or []), copy.deepcopy(body)))
        if (method, resource_path) in self.failures:
            raise self._error(self.failures[(method, resource_path)])

        if resource_path == "/api":
            return {"versions": [gv for gv in self.kinds if "/" not in gv]}
        if resource_path == "/apis":
            return {
                "groups": [
                    {
                        "name": gv.split("/")[0],
                        "preferredVersion": {"groupVersion": gv, "version": gv.split("/")[1]},
                    }
                    for gv in self.kinds
                    if "/" in gv
                ]
            }

        group_version, rest = self._split(resource_path)
        if not rest:
            if group_version not in self.kinds:
                raise self._error(404)
            return {"groupVersion": group_version, "resources": self.kinds[group_version]}

        if rest[0] == "namespaces" and len(rest) >= 3:
            namespace, plural, name = rest[1], rest[2], (rest[3] if len(rest) > 3 else None)
        else:
            namespace, plural, name = None, rest[0], (rest[1] if len(rest) > 1 else None)
        kind = self._kind_for(group_version, plural)

        if name is None and method == "GET":
            return self._list(group_version, kind, dict(query_params or []))
        if name is None and method == "POST":
            return self._create(group_version, kind, namespace, body)

        key = (group_version, plural, namespace, name)
        if key not in self.objects:
            raise self._error(404, f"{plural} {name} not found")
        if method == "GET":
            return copy.deepcopy(self.objects[key])
        if method == "PUT":
            self.objects[key] = copy.deepcopy(body)
            return copy.deepcopy(body)
        if method == "DELETE":
            del self.objects[key]
            return {"kind": "Status", "status": "Success"}
        raise self._error(405)

    def _create(self, group_version, kind, namespace, body):
        name = body["metadata"]["name"]
        key = (group_version, kind["name"], namespace, name)
        if key in self.objects:
            raise self._error(409, f"{name} already exists")
        obj = copy.deepcopy(body)
        if namespace:
            obj["metadata"]["namespace"] = namespace
        self.objects[key] = obj
        return copy.deepcopy(obj)

    def _list(self, group_version, kind, query):
        selector = query.get("labelSelector")
        items = []
        for (gv, plural, _, _), obj in self.objects.items():
            if gv != group_version or plural != kind["name"]:
                continue
            if selector:
                label, _, value = selector.partition("=")
                if (obj["metadata"].get("labels") or {}).get(label) != value:
                    continue
            item = copy.deepcopy(obj)
            item.pop("apiVersion", None)
            item.pop("kind", None)
            items.append(item)
        return {"kind": f"{kind['kind']}List", "items": items}


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a temporary directory, with retries disabled."""
    return Settings(
        credentials_dir=tmp_path / "credentials",
        resources_dir=tmp_path / "resources",
        request_timeout_seconds=5,
        retry_attempts=1,
        retry_wait_min_seconds=0,
        retry_wait_max_seconds=0,
    )


@pytest.fixture
def host() -> Host:
    """Sample master host."""
    return Host(address="192.0.2.1", role="master")


@pytest.fixture
def credentials(settings: Settings, host: Host) -> Path:
    """Stored kubeconfig for the sample host."""
    settings.credentials_dir.mkdir(parents=True, exist_ok=True)
    path = settings.credentials_dir / host.address
    path.write_text("apiVersion: v1\nkind: Config\n")
    return path


@pytest.fixture
def fake_server() -> FakeApiServer:
    """Fake API server with a core group, apps, a review kind and a custom resource."""
    server = FakeApiServer()
    server.register_kind("v1", "Namespace", "namespaces", namespaced=False)
    server.register_kind("v1", "ConfigMap", "configmaps")
    server.register_kind("v1", "Service", "services")
    server.register_kind("v1", "Binding", "bindings", verbs=("create",))
    server.register_kind("apps/v1", "Deployment", "deployments")
    server.register_kind("apps/v1", "Deployment", "deployments/status", verbs=("get", "update"))
    server.register_kind(
        "authentication.k8s.io/v1", "TokenReview", "tokenreviews",
        namespaced=False, verbs=("create",),
    )
    server.register_kind("example.com/v1", "Widget", "widgets")
    return server


@pytest.fixture
def pool(settings: Settings, credentials: Path, fake_server: FakeApiServer):
    """Connection pool whose connections talk to the fake API server."""
    with patch(
        "kube_stack.cluster.config.new_client_from_config", return_value=fake_server
    ):
        yield ConnectionPool(settings)


@pytest.fixture
def write_manifest(settings: Settings):
    """Write a manifest into a stack directory."""

    def _write(stack: str, filename: str, manifest: dict[str, Any]) -> Path:
        directory = settings.resources_dir / stack
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / filename
        path.write_text(yaml.safe_dump(manifest))
        return path

    return _write
