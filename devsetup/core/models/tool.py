"""
Tool model — what can be installed and through which package manager.

A ``ToolDefinition`` is loaded once at start-up from the static catalog
(plus any config-file overrides) and never mutated afterwards.  Package
identifiers are normalized here, at the registry boundary: a backend may
be declared with a single identifier or an ordered list of alternates,
and both shapes come out as a non-empty tuple.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class BackendKind(StrEnum):
    """Supported package managers, in fixed preference order.

    Declaration order IS the priority order: winget is the primary
    manager, Chocolatey the secondary, scoop the tertiary.
    """

    WINGET = "winget"
    CHOCOLATEY = "choco"
    SCOOP = "scoop"

    @property
    def priority(self) -> int:
        """0 for the most preferred backend."""
        return list(BackendKind).index(self)

    @classmethod
    def ordered(cls) -> list[BackendKind]:
        return list(cls)

    @classmethod
    def parse(cls, value: str | BackendKind) -> BackendKind:
        """Resolve a backend from its value or member name (case-insensitive).

        ``"choco"``, ``"chocolatey"`` and ``"CHOCOLATEY"`` all resolve
        to ``BackendKind.CHOCOLATEY``.
        """
        if isinstance(value, BackendKind):
            return value
        key = str(value).strip().lower()
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        raise ValueError(f"Unknown backend: {value!r}")


class ToolDefinition(BaseModel):
    """A logical tool (e.g. ``git``) and its per-backend package identifiers."""

    model_config = ConfigDict(frozen=True)

    name: str
    label: str = ""
    packages: dict[BackendKind, tuple[str, ...]] = Field(default_factory=dict)
    command: str | None = None          # None = not an executable (fonts)
    version_args: tuple[str, ...] = ("--version",)
    manual_url: str | None = None
    built_in: bool = False              # ships with a stock OS install

    @model_validator(mode="before")
    @classmethod
    def _fill_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        name = str(data.get("name", "")).strip().lower()
        data["name"] = name
        data.setdefault("label", name)
        # Only an explicit ``command: null`` disables verification
        data.setdefault("command", name)
        return data

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not value:
            raise ValueError("tool name must not be empty")
        return value

    @field_validator("packages", mode="before")
    @classmethod
    def _normalize_packages(cls, value: Any) -> dict[BackendKind, tuple[str, ...]]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("packages must be a mapping of backend → identifier(s)")

        parsed: dict[BackendKind, tuple[str, ...]] = {}
        for key, ids in value.items():
            kind = BackendKind.parse(key)
            if isinstance(ids, str):
                ids = [ids]
            if not isinstance(ids, (list, tuple)):
                raise ValueError(f"{kind}: identifiers must be a string or a list")
            cleaned = tuple(str(i).strip() for i in ids if str(i).strip())
            if not cleaned:
                raise ValueError(f"{kind}: at least one package identifier is required")
            parsed[kind] = cleaned

        return {k: parsed[k] for k in sorted(parsed, key=lambda k: k.priority)}

    @field_validator("version_args", mode="before")
    @classmethod
    def _normalize_version_args(cls, value: Any) -> tuple[str, ...]:
        if isinstance(value, str):
            return tuple(value.split())
        return tuple(value or ())

    @property
    def backends(self) -> list[BackendKind]:
        """Backends this tool is packaged for, in priority order."""
        return list(self.packages)

    @property
    def verifiable(self) -> bool:
        return self.command is not None

    def identifiers(self, kind: BackendKind) -> tuple[str, ...]:
        return self.packages.get(kind, ())

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "label": self.label,
            "packages": {k.value: list(v) for k, v in self.packages.items()},
            "command": self.command,
            "version_args": list(self.version_args),
            "manual_url": self.manual_url,
            "built_in": self.built_in,
        }
