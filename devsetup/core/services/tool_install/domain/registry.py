"""
L1 Domain — Tool registry (pure).

Turns the raw catalog into immutable ``ToolDefinition`` objects and
answers "which (backend, package) pairs should be tried, in what
order" for a given set of available backends.

No I/O, no subprocess.  The registry is built once and shared freely
between tool workers.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from devsetup.core.models.tool import BackendKind, ToolDefinition
from devsetup.core.services.tool_install.data.tool_catalog import TOOL_CATALOG

logger = logging.getLogger(__name__)

Candidate = tuple[BackendKind, str]


class RegistryError(Exception):
    """Raised when a tool definition is malformed or duplicated."""


def load_definition(name: str, raw: Mapping[str, Any]) -> ToolDefinition:
    """Validate one raw catalog entry.

    Raises:
        RegistryError: If the entry does not describe a valid tool.
    """
    if not isinstance(raw, Mapping):
        raise RegistryError(f"Tool '{name}': expected a mapping, got {type(raw).__name__}")
    try:
        return ToolDefinition.model_validate({**raw, "name": name})
    except (ValidationError, ValueError) as e:
        raise RegistryError(f"Tool '{name}': {e}") from e


class ToolRegistry:
    """Immutable lookup of tool definitions by name."""

    def __init__(self, definitions: Iterable[ToolDefinition]):
        tools: dict[str, ToolDefinition] = {}
        for definition in definitions:
            if definition.name in tools:
                raise RegistryError(f"Duplicate tool definition: {definition.name}")
            tools[definition.name] = definition
        self._tools = tools

    @classmethod
    def from_catalog(
        cls,
        catalog: Mapping[str, Mapping[str, Any]] | None = None,
        extra: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> ToolRegistry:
        """Build a registry from raw catalog data.

        Args:
            catalog: Raw entries (defaults to ``TOOL_CATALOG``).
            extra: Entries from configuration; an entry with the same
                name as a catalog tool replaces it.
        """
        merged: dict[str, Mapping[str, Any]] = {
            name.strip().lower(): raw
            for name, raw in (TOOL_CATALOG if catalog is None else catalog).items()
        }
        for name, raw in (extra or {}).items():
            key = name.strip().lower()
            if key in merged:
                logger.debug("Config overrides catalog entry for %s", key)
            merged[key] = raw

        registry = cls(load_definition(name, raw) for name, raw in merged.items())
        logger.debug("Tool registry loaded with %d tools", len(registry))
        return registry

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip().lower() in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def get(self, name: str) -> ToolDefinition | None:
        """Look up a tool by name (case-insensitive)."""
        return self._tools.get(name.strip().lower())

    def names(self) -> list[str]:
        return sorted(self._tools)

    def all(self) -> list[ToolDefinition]:
        return [self._tools[n] for n in self.names()]

    def candidates(
        self,
        tool: ToolDefinition,
        available: Sequence[BackendKind],
    ) -> list[Candidate]:
        """Ordered (backend, package) pairs to try for ``tool``.

        Every identifier of the highest-priority available backend comes
        first, in declaration order, then the next backend's.  Backends
        the tool is not packaged for are skipped.
        """
        present = set(available)
        result: list[Candidate] = []
        for kind in BackendKind.ordered():
            if kind not in present:
                continue
            for package_id in tool.identifiers(kind):
                result.append((kind, package_id))
        return result
