"""Rules service layer - ties the store, engine, decision log and conflict analysis together."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from mizan.rules.conflicts import find_conflicts
from mizan.rules.engine import DecisionEngine
from mizan.rules.ids import IdFactory
from mizan.rules.models import Conflict, Decision
from mizan.rules.store import (
    DecisionLog,
    DecisionPersistence,
    RulePersistence,
    RuleStore,
)


class RulesService:
    """Decision request and audit query surface over one rule store."""

    def __init__(
        self,
        store: RuleStore | None = None,
        decisions: DecisionLog | None = None,
        engine: DecisionEngine | None = None,
    ):
        self.store = store if store is not None else RuleStore()
        self.decisions = decisions if decisions is not None else DecisionLog()
        self.engine = engine if engine is not None else DecisionEngine()

    @classmethod
    def from_persistence(
        cls,
        rules: RulePersistence,
        decisions: DecisionPersistence,
        id_factory: IdFactory | None = None,
    ) -> RulesService:
        """Build a service whose store and decision log write through to persistence."""
        id_factory = id_factory or IdFactory()
        return cls(
            store=RuleStore.from_persistence(rules, id_factory=id_factory),
            decisions=DecisionLog.from_persistence(decisions),
            engine=DecisionEngine(id_factory=id_factory),
        )

    def decide(self, facts: Mapping[str, Any]) -> Decision:
        """Evaluate facts against the current rule snapshot and log the decision."""
        decision = self.engine.decide(facts, self.store.list(active_only=True))
        return self.decisions.append(decision)

    def list_decisions(self) -> tuple[Decision, ...]:
        return self.decisions.list()

    def conflicts(self) -> list[Conflict]:
        return find_conflicts(self.store.list(active_only=True))
