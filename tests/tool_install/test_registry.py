"""
Tests for the tool registry — catalog normalization and candidate order.
"""

import pytest

from devsetup.core.models.tool import BackendKind
from devsetup.core.services.tool_install.data.tool_catalog import TOOL_CATALOG
from devsetup.core.services.tool_install.domain.registry import (
    RegistryError,
    ToolRegistry,
    load_definition,
)

W, C, S = BackendKind.WINGET, BackendKind.CHOCOLATEY, BackendKind.SCOOP


class TestBuiltInCatalog:
    def test_catalog_loads(self):
        registry = ToolRegistry.from_catalog()
        assert len(registry) == len(TOOL_CATALOG)
        assert "git" in registry

    def test_every_identifier_is_a_non_empty_tuple(self):
        for tool in ToolRegistry.from_catalog().all():
            for ids in tool.packages.values():
                assert isinstance(ids, tuple)
                assert ids and all(ids)

    def test_fonts_are_not_verifiable(self):
        registry = ToolRegistry.from_catalog()
        assert registry.get("cascadia-code-nf").verifiable is False
        assert registry.get("cascadia-code-nf").identifiers(C) == (
            "cascadia-code-nerd-font", "cascadiacodepl",
        )

    def test_command_overrides(self):
        registry = ToolRegistry.from_catalog()
        assert registry.get("ripgrep").command == "rg"
        assert registry.get("openssh").version_args == ("-V",)


class TestLoading:
    def test_scalar_and_list_shapes_normalize(self):
        registry = ToolRegistry.from_catalog({
            "a": {"packages": {"winget": "A.A"}},
            "b": {"packages": {"winget": ["B.1", "B.2"]}},
        })
        assert registry.get("a").identifiers(W) == ("A.A",)
        assert registry.get("b").identifiers(W) == ("B.1", "B.2")

    def test_empty_identifier_list_is_rejected(self):
        with pytest.raises(RegistryError, match="at least one"):
            ToolRegistry.from_catalog({"empty": {"packages": {"choco": []}}})

    def test_unknown_backend_is_rejected(self):
        with pytest.raises(RegistryError, match="brew"):
            load_definition("x", {"packages": {"brew": "x"}})

    def test_non_mapping_entry_is_rejected(self):
        with pytest.raises(RegistryError):
            load_definition("x", ["winget"])

    def test_duplicate_names_are_rejected(self):
        a = load_definition("dup", {"packages": {"winget": "A"}})
        b = load_definition("DUP", {"packages": {"choco": "B"}})
        with pytest.raises(RegistryError, match="Duplicate"):
            ToolRegistry([a, b])

    def test_extra_entries_override_by_name(self):
        registry = ToolRegistry.from_catalog(
            {"git": {"packages": {"winget": "Git.Git"}}},
            extra={"Git": {"packages": {"scoop": "git"}}, "mine": {"packages": {"choco": "mine"}}},
        )
        assert registry.get("git").backends == [S]
        assert registry.names() == ["git", "mine"]

    def test_lookup_is_case_insensitive(self):
        registry = ToolRegistry.from_catalog({"fzf": {"packages": {"winget": "junegunn.fzf"}}})
        assert registry.get(" FZF ").name == "fzf"
        assert "Fzf" in registry
        assert registry.get("nope") is None
        assert 42 not in registry


class TestCandidates:
    @pytest.fixture
    def registry(self):
        return ToolRegistry.from_catalog({
            # declared out of priority order on purpose
            "t": {"packages": {"scoop": "t-s", "choco": ["t-c1", "t-c2"], "winget": "t-w"}},
        })

    def test_priority_then_declaration_order(self, registry):
        tool = registry.get("t")
        assert registry.candidates(tool, [W, C, S]) == [
            (W, "t-w"), (C, "t-c1"), (C, "t-c2"), (S, "t-s"),
        ]

    def test_order_of_available_list_does_not_matter(self, registry):
        tool = registry.get("t")
        assert registry.candidates(tool, [S, C]) == [(C, "t-c1"), (C, "t-c2"), (S, "t-s")]

    def test_no_available_backends(self, registry):
        assert registry.candidates(registry.get("t"), []) == []
