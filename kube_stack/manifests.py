"""Stack manifest discovery and parsing."""

import logging
from pathlib import Path
from typing import Any, Callable, Optional

import yaml
from pydantic import ValidationError

from .config import Settings, get_settings
from .exceptions import ManifestParseError
from .models import Resource

logger = logging.getLogger(__name__)

MANIFEST_PATTERNS = ("*.yml", "*.yaml", "*.yml.j2", "*.yaml.j2")

# Receives the raw file text and the template variables, returns manifest text
Renderer = Callable[[str, dict[str, Any]], str]


def passthrough_renderer(text: str, vars: dict[str, Any]) -> str:
    """Default renderer: manifests arrive with variables already substituted."""
    return text


class ManifestSource:
    """Loads the manifests of named stacks from a resources directory."""

    def __init__(
        self,
        resources_dir: Optional[Path] = None,
        renderer: Optional[Renderer] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize manifest source.

        Args:
            resources_dir: Directory with one sub-directory per stack
            renderer: Templating hook applied to each file before parsing
            settings: Library settings, used when resources_dir is omitted
        """
        settings = settings or get_settings()
        self.resources_dir = Path(resources_dir or settings.resources_dir)
        self.renderer = renderer or passthrough_renderer

    def resource_path(self, *parts: str) -> Path:
        """
        Join path components onto the resources directory.

        Example: ``resource_path("host-nodes")`` is ``<resources_dir>/host-nodes``.
        """
        return self.resources_dir.joinpath(*parts)

    def stack_exists(self, stack: str) -> bool:
        return self.resource_path(stack).is_dir()

    def resource_files(self, stack: str) -> list[Path]:
        """
        List a stack's manifest files in lexicographic path order.

        Args:
            stack: Stack name

        Returns:
            Sorted list of manifest paths
        """
        directory = self.resource_path(stack)
        files = {path for pattern in MANIFEST_PATTERNS for path in directory.glob(pattern)}
        return sorted(files, key=str)

    def parse_resource_file(
        self, path: Path, vars: Optional[dict[str, Any]] = None
    ) -> Resource:
        """
        Parse one manifest file into a resource.

        Args:
            path: Manifest file (one resource per file)
            vars: Template variables handed to the renderer

        Returns:
            Resource

        Raises:
            ManifestParseError: If the file is not a valid resource document
        """
        try:
            text = self.renderer(Path(path).read_text(encoding="utf-8"), vars or {})
            document = yaml.safe_load(text)
        except (OSError, yaml.YAMLError) as e:
            raise ManifestParseError(path, str(e)) from e

        if not isinstance(document, dict):
            raise ManifestParseError(path, "manifest must be a mapping")
        for key in ("apiVersion", "kind"):
            if not document.get(key):
                raise ManifestParseError(path, f"missing {key}")
        if not isinstance(document.get("metadata"), dict) or not document["metadata"].get("name"):
            raise ManifestParseError(path, "missing metadata.name")

        try:
            return Resource.from_dict(document)
        except ValidationError as e:
            raise ManifestParseError(path, str(e)) from e

    def load_stack(self, stack: str, vars: Optional[dict[str, Any]] = None) -> list[Resource]:
        """Parse every manifest of a stack, in apply order."""
        files = self.resource_files(stack)
        logger.debug(f"Loading {len(files)} manifests for stack {stack}")
        return [self.parse_resource_file(path, vars) for path in files]
