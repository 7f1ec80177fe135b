"""
Rule repository for database operations.

Stores the complete rule set; each save replaces all rows in a single
transaction, keeping store order in the ``position`` column.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import text

from mizan.rules.models import Rule
from mizan.storage.database import get_db


class RuleRepository:
    """Repository for rule persistence operations."""

    def load_rules(self) -> list[Rule]:
        """Load all rules (active and inactive) in store order."""
        with get_db() as conn:
            result = conn.execute(text("SELECT * FROM rules ORDER BY position"))
            return [self._from_row(dict(row._mapping)) for row in result]

    def save_rules(self, rules: Sequence[Rule]) -> None:
        """Replace the stored rule set.

        Args:
            rules: The full rule set in store order
        """
        with get_db() as conn:
            conn.execute(text("DELETE FROM rules"))
            if not rules:
                return
            conn.execute(
                text("""
                    INSERT INTO rules (
                        id, position, name, condition, action, reason, priority, is_active
                    ) VALUES (
                        :id, :position, :name, :condition, :action, :reason, :priority, :is_active
                    )
                """),
                [self._to_row(position, rule) for position, rule in enumerate(rules)],
            )

    def count_rules(self, active_only: bool = True) -> int:
        with get_db() as conn:
            query = "SELECT COUNT(*) FROM rules"
            if active_only:
                query += " WHERE is_active = 1"
            return conn.execute(text(query)).scalar_one()

    @staticmethod
    def _to_row(position: int, rule: Rule) -> dict[str, Any]:
        return {
            "id": rule.id,
            "position": position,
            "name": rule.name,
            "condition": rule.condition,
            "action": rule.action.value,
            "reason": rule.reason,
            "priority": rule.priority,
            "is_active": 1 if rule.active else 0,
        }

    @staticmethod
    def _from_row(row: dict[str, Any]) -> Rule:
        return Rule(
            id=row["id"],
            name=row["name"],
            condition=row["condition"],
            action=row["action"],
            reason=row["reason"],
            priority=int(row["priority"]),
            active=bool(row["is_active"]),
        )
