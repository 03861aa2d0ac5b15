"""
L1 Domain — Failure classification (pure).

Maps a failure message (plus what we know about the tool) to a
severity and a prioritized list of human-actionable suggestions.
Rules are evaluated in order and the first match wins; no match
yields the generic fallback.

No I/O, no subprocess.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from devsetup.core.models.install import Severity
from devsetup.core.models.tool import BackendKind, ToolDefinition
from devsetup.core.services.tool_install.data.failure_rules import (
    CATEGORY_ADVICE,
    FAILURE_RULES,
    FALLBACK_ADVICE,
)


@dataclass
class Classification:
    """Severity + suggestions for one failure."""

    category: str
    severity: Severity
    label: str = ""
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "severity": self.severity.value,
            "label": self.label,
            "suggestions": list(self.suggestions),
        }


def compile_rules(rules: Iterable[dict]) -> list[tuple[re.Pattern[str], dict]]:
    """Pair each rule with its compiled pattern; a malformed one raises ``re.error``."""
    return [(re.compile(rule["pattern"], re.IGNORECASE), rule) for rule in rules]


_COMPILED_RULES = compile_rules(FAILURE_RULES)


def _match_rule(message: str) -> dict | None:
    """Return the first rule whose pattern matches ``message``."""
    for pattern, rule in _COMPILED_RULES:
        if pattern.search(message):
            return rule
    return None


def _tool_suggestions(
    tool: ToolDefinition,
    backends_tried: Iterable[BackendKind],
) -> list[str]:
    """Suggestions that depend on the tool rather than on the failure text."""
    tips: list[str] = []
    tried = set(backends_tried)

    untried = [k.value for k in tool.backends if k not in tried]
    if untried:
        tips.append(
            f"{tool.label} is also packaged for {', '.join(untried)}; installing "
            f"that package manager gives another route."
        )
    if tool.manual_url:
        tips.append(f"Download {tool.label} manually from {tool.manual_url}.")
    return tips


def _dedupe(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


def classify_failure(
    message: str,
    tool: ToolDefinition | None = None,
    backends_tried: Iterable[BackendKind] = (),
    category: str | None = None,
) -> Classification:
    """Classify a failure and suggest what the user can do about it.

    Args:
        message: Failure text (error summary plus any installer output).
        tool: The tool being installed, for tool-specific advice.
        backends_tried: Backends that were attempted.
        category: Known category (``no_backend``, ``no_candidate``,
            ``verification``, ``cancelled``, ``unknown_tool``); skips
            pattern matching.

    Returns:
        Classification with the matched category, severity, and
        suggestions (category advice first, tool advice after).
    """
    advice: dict
    if category and category in CATEGORY_ADVICE:
        advice = {"category": category, **CATEGORY_ADVICE[category]}
    else:
        advice = _match_rule(message or "") or FALLBACK_ADVICE

    suggestions = list(advice["suggestions"])
    if tool is not None and advice["category"] not in ("cancelled", "unknown_tool"):
        suggestions.extend(_tool_suggestions(tool, backends_tried))

    return Classification(
        category=advice["category"],
        severity=Severity(advice["severity"]),
        label=advice.get("label", ""),
        suggestions=_dedupe(suggestions),
    )
