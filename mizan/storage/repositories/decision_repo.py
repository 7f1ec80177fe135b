"""
Decision repository for the append-only decision log.

Decisions are only ever inserted; there are no update or delete operations.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from sqlalchemy import text

from mizan.rules.models import Decision, TraceStep
from mizan.storage.database import get_db


class DecisionRepository:
    """Repository for decision persistence operations."""

    def append_decision(self, decision: Decision) -> None:
        """Append a decision to the log."""
        with get_db() as conn:
            sequence_number = conn.execute(
                text("SELECT COALESCE(MAX(sequence_number), 0) + 1 FROM decisions")
            ).scalar_one()
            conn.execute(
                text("""
                    INSERT INTO decisions (
                        id, sequence_number, timestamp, facts_json, decision,
                        matched_rule_id, rule_name, reason, trace_json
                    ) VALUES (
                        :id, :sequence_number, :timestamp, :facts_json, :decision,
                        :matched_rule_id, :rule_name, :reason, :trace_json
                    )
                """),
                {
                    "id": decision.id,
                    "sequence_number": sequence_number,
                    "timestamp": decision.timestamp.isoformat(),
                    "facts_json": json.dumps(dict(decision.facts), ensure_ascii=False),
                    "decision": decision.decision.value,
                    "matched_rule_id": decision.matched_rule_id,
                    "rule_name": decision.rule_name,
                    "reason": decision.reason,
                    "trace_json": json.dumps(
                        [step.model_dump(mode="json") for step in decision.trace],
                        ensure_ascii=False,
                    ),
                },
            )

    def load_decisions(self) -> list[Decision]:
        """Load all decisions, oldest first."""
        with get_db() as conn:
            result = conn.execute(text("SELECT * FROM decisions ORDER BY sequence_number"))
            return [self._from_row(dict(row._mapping)) for row in result]

    def get_decision(self, decision_id: str) -> Decision | None:
        with get_db() as conn:
            row = conn.execute(
                text("SELECT * FROM decisions WHERE id = :id"), {"id": decision_id}
            ).fetchone()
            return self._from_row(dict(row._mapping)) if row else None

    @staticmethod
    def _from_row(row: dict[str, Any]) -> Decision:
        return Decision(
            id=row["id"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
            facts=json.loads(row["facts_json"]),
            decision=row["decision"],
            matched_rule_id=row["matched_rule_id"],
            rule_name=row["rule_name"],
            reason=row["reason"],
            trace=tuple(TraceStep(**step) for step in json.loads(row["trace_json"] or "[]")),
        )
