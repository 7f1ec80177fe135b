"""Decision engine: first matching rule by priority wins."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from mizan.errors import ConditionParseError
from mizan.logging import get_logger
from mizan.rules.expression import evaluate
from mizan.rules.ids import Clock, IdFactory
from mizan.rules.models import (
    NO_MATCH_REASON,
    NO_MATCH_RULE_NAME,
    Action,
    Decision,
    Rule,
    TraceStep,
)


logger = get_logger(__name__)


def order_candidates(rules: Iterable[Rule]) -> list[Rule]:
    """Active rules, highest priority first; equal priorities keep store order."""
    # sorted() is stable, so ties preserve the input order.
    return sorted((rule for rule in rules if rule.active), key=lambda rule: -rule.priority)


class DecisionEngine:
    """Evaluates facts against an ordered rule set and emits a Decision.

    The engine holds no rule state. Ids and timestamps come from the injected
    ``id_factory`` and ``clock`` so results are reproducible in tests.
    """

    def __init__(self, id_factory: IdFactory | None = None, clock: Clock | None = None):
        self.id_factory = id_factory or IdFactory(clock)
        self.clock = clock or self.id_factory.clock

    def decide(self, facts: Mapping[str, Any], rules: Iterable[Rule]) -> Decision:
        """Return the Decision of the first matching active rule.

        Rules whose condition fails to parse are logged, recorded in the trace
        and treated as non-matching. When nothing matches the decision is
        REVIEW with no matched rule.
        """
        facts = dict(facts)
        trace: list[TraceStep] = []
        matched: Rule | None = None

        for rule in order_candidates(rules):
            try:
                result = evaluate(rule.condition, facts)
            except ConditionParseError as exc:
                logger.warning(
                    "rule_condition_unparseable",
                    rule_id=rule.id,
                    fragment=exc.fragment,
                    position=exc.position,
                )
                trace.append(
                    TraceStep(rule_id=rule.id, condition=rule.condition, result=False, error=exc.message)
                )
                continue

            trace.append(TraceStep(rule_id=rule.id, condition=rule.condition, result=result))
            if result:
                matched = rule
                break

        decision = Decision(
            id=self.id_factory.decision_id(),
            timestamp=self.clock(),
            facts=facts,
            decision=matched.action if matched else Action.REVIEW,
            matched_rule_id=matched.id if matched else None,
            rule_name=matched.name if matched else NO_MATCH_RULE_NAME,
            reason=matched.reason if matched else NO_MATCH_REASON,
            trace=tuple(trace),
        )

        logger.info(
            "decision_made",
            decision_id=decision.id,
            decision=decision.decision.value,
            matched_rule_id=decision.matched_rule_id,
            rules_evaluated=len(trace),
        )
        return decision
