"""
Static conflict detection across the rule set.

Compares every unordered pair of active rules. Two rules conflict when their
conditions are equal after trimming and case-folding:

- different actions: contradictory
- same action: duplicate

The comparison is literal. Conditions that are equivalent but worded
differently (``a > 5`` and ``5 < a``) are not reported.
"""

from __future__ import annotations

from collections.abc import Iterable

from mizan.rules.expression import normalize_condition
from mizan.rules.models import Conflict, ConflictType, Rule


CONTRADICTORY_SUGGESTION = (
    "Remove or deactivate one of the conflicting rules, or adjust priorities."
)
DUPLICATE_SUGGESTION = "Remove the duplicate rule."


def find_conflicts(rules: Iterable[Rule]) -> list[Conflict]:
    """Detect contradictory and duplicate rule pairs.

    Args:
        rules: Rules in store order; inactive rules are ignored

    Returns:
        One Conflict per conflicting pair, in pair order
    """
    active = [rule for rule in rules if rule.active]
    normalized = [normalize_condition(rule.condition) for rule in active]
    conflicts = []

    for i, rule_a in enumerate(active):
        for j in range(i + 1, len(active)):
            rule_b = active[j]
            if rule_a.id == rule_b.id or normalized[i] != normalized[j]:
                continue
            conflicts.append(_build_conflict(rule_a, rule_b))

    return conflicts


def _build_conflict(rule_a: Rule, rule_b: Rule) -> Conflict:
    if rule_a.action != rule_b.action:
        return Conflict(
            type=ConflictType.CONTRADICTORY,
            rule_ids=(rule_a.id, rule_b.id),
            rule_names=(rule_a.name, rule_b.name),
            explanation=(
                f'Rules "{rule_a.name}" and "{rule_b.name}" have the same condition '
                f"but different actions ({rule_a.action.value} vs {rule_b.action.value})"
            ),
            suggestion=CONTRADICTORY_SUGGESTION,
        )
    return Conflict(
        type=ConflictType.DUPLICATE,
        rule_ids=(rule_a.id, rule_b.id),
        rule_names=(rule_a.name, rule_b.name),
        explanation=f'Rules "{rule_a.name}" and "{rule_b.name}" appear to be duplicates',
        suggestion=DUPLICATE_SUGGESTION,
    )
