"""Connection rule resolution.

An edge is legal when exactly one declared rule matches its
(source type, source handle, target type, target handle) tuple. Matching is
exact and directional: an edge drawn the other way round matches nothing.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass

from canvasform.diagram import ConnectionRule


@dataclass(frozen=True)
class RuleMatch:
    rule: ConnectionRule | None
    candidates: int = 0

    @property
    def resolved(self) -> bool:
        return self.rule is not None

    @property
    def ambiguous(self) -> bool:
        return self.candidates > 1


def resolve(
    rules: Sequence[ConnectionRule],
    source_type: str,
    source_handle: str,
    target_type: str,
    target_handle: str,
) -> RuleMatch:
    """Find the rule governing an edge.

    When several rules share the tuple the first registered one wins and the
    match is flagged ambiguous.
    """
    key = (source_type, source_handle, target_type, target_handle)
    matches = [r for r in rules if r.key == key]
    if not matches:
        return RuleMatch(rule=None, candidates=0)
    return RuleMatch(rule=matches[0], candidates=len(matches))


def describe(source_type: str, source_handle: str, target_type: str, target_handle: str) -> str:
    return f"{source_type}[{source_handle}] -> {target_type}[{target_handle}]"


def valid_targets(rules: Sequence[ConnectionRule], source_type: str, source_handle: str) -> list[ConnectionRule]:
    return [r for r in rules if r.source_type == source_type and r.source_handle == source_handle]


def valid_sources(rules: Sequence[ConnectionRule], target_type: str, target_handle: str) -> list[ConnectionRule]:
    return [r for r in rules if r.target_type == target_type and r.target_handle == target_handle]


def duplicate_rules(rules: Sequence[ConnectionRule]) -> list[tuple[str, str, str, str]]:
    """Tuples declared by more than one rule, in first-seen order."""
    counts = Counter(r.key for r in rules)
    seen: list[tuple[str, str, str, str]] = []
    for r in rules:
        if counts[r.key] > 1 and r.key not in seen:
            seen.append(r.key)
    return seen
