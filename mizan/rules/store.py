"""
In-memory rule store and decision log.

Both hold an immutable tuple that is replaced on every write. Reads return
that tuple, so a reader always sees a complete snapshot, never a partially
applied write. Writes are serialized by a lock and pushed to the optional
persistence collaborator before the new snapshot is published.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Protocol

from pydantic import ValidationError as PydanticValidationError

from mizan.errors import NotFoundError, ValidationError
from mizan.logging import get_logger
from mizan.rules.expression import validate_condition
from mizan.rules.ids import IdFactory
from mizan.rules.models import Decision, Rule, RuleDraft


logger = get_logger(__name__)


# =============================================================================
# Persistence collaborators
# =============================================================================


class RulePersistence(Protocol):
    """Durable storage for the rule set."""

    def load_rules(self) -> list[Rule]: ...

    def save_rules(self, rules: Sequence[Rule]) -> None: ...


class DecisionPersistence(Protocol):
    """Append-only durable storage for decisions."""

    def load_decisions(self) -> list[Decision]: ...

    def append_decision(self, decision: Decision) -> None: ...


def _validation_details(exc: PydanticValidationError) -> dict[str, Any]:
    return {
        "errors": [
            {"loc": [str(part) for part in err["loc"]], "msg": err["msg"], "type": err["type"]}
            for err in exc.errors()
        ]
    }


def validate_draft(data: RuleDraft | Mapping[str, Any]) -> RuleDraft:
    """Validate caller-supplied rule data.

    Raises:
        ValidationError: if the data is not a valid rule or carries an id
    """
    if isinstance(data, RuleDraft) and not isinstance(data, Rule):
        return data
    if isinstance(data, Rule) or "id" in data:
        raise ValidationError("Rule ids are generated by the store", {"field": "id"})
    try:
        return RuleDraft.model_validate(dict(data))
    except PydanticValidationError as exc:
        raise ValidationError("Invalid rule", _validation_details(exc)) from exc


# =============================================================================
# Rule Store
# =============================================================================


class RuleStore:
    """Authoritative in-memory copy of the rule set."""

    def __init__(
        self,
        rules: Iterable[Rule] = (),
        *,
        persistence: RulePersistence | None = None,
        id_factory: IdFactory | None = None,
    ):
        rules = tuple(rules)
        ids = [rule.id for rule in rules]
        if len(ids) != len(set(ids)):
            raise ValidationError("Duplicate rule ids in initial rule set")

        self.persistence = persistence
        self.id_factory = id_factory or IdFactory()
        self._rules: tuple[Rule, ...] = rules
        self._write_lock = threading.Lock()

    @classmethod
    def from_persistence(
        cls, persistence: RulePersistence, id_factory: IdFactory | None = None
    ) -> RuleStore:
        """Create a store seeded from, and writing through to, a persistence collaborator."""
        return cls(persistence.load_rules(), persistence=persistence, id_factory=id_factory)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list(self, active_only: bool = False) -> tuple[Rule, ...]:
        """Return an atomic snapshot of the rules in store order."""
        rules = self._rules
        if active_only:
            return tuple(rule for rule in rules if rule.active)
        return rules

    def get(self, rule_id: str) -> Rule:
        for rule in self._rules:
            if rule.id == rule_id:
                return rule
        raise NotFoundError(f"Rule not found: {rule_id}", {"rule_id": rule_id})

    def __len__(self) -> int:
        return len(self._rules)

    @staticmethod
    def condition_error(rule: Rule | RuleDraft) -> str | None:
        """Return the parse error message for a rule's condition, if any."""
        error = validate_condition(rule.condition)
        return error.message if error else None

    def invalid_rules(self) -> dict[str, str]:
        """Map ids of rules whose condition does not parse to the parse error."""
        invalid = {}
        for rule in self._rules:
            error = self.condition_error(rule)
            if error:
                invalid[rule.id] = error
        return invalid

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def add(self, data: RuleDraft | Mapping[str, Any]) -> Rule:
        """Validate and append a rule, generating its id."""
        draft = validate_draft(data)
        with self._write_lock:
            rule = Rule(id=self._new_id(), **draft.model_dump())
            self._commit(self._rules + (rule,))

        logger.info("rule_added", rule_id=rule.id, action=rule.action.value, priority=rule.priority)
        self._warn_if_invalid(rule)
        return rule

    def update(self, rule_id: str, changes: Mapping[str, Any]) -> Rule:
        """Merge partial changes into a rule and revalidate it."""
        changes = dict(changes)
        if changes.pop("id", rule_id) != rule_id:
            raise ValidationError("Rule ids are immutable", {"field": "id"})

        with self._write_lock:
            index, existing = self._locate(rule_id)
            merged = existing.draft().model_dump()
            merged.update(changes)
            rule = Rule(id=rule_id, **validate_draft(merged).model_dump())
            rules = list(self._rules)
            rules[index] = rule
            self._commit(tuple(rules))

        logger.info("rule_updated", rule_id=rule_id, fields=sorted(changes))
        self._warn_if_invalid(rule)
        return rule

    def remove(self, rule_id: str) -> Rule:
        """Delete a rule, returning the removed rule."""
        with self._write_lock:
            index, existing = self._locate(rule_id)
            self._commit(self._rules[:index] + self._rules[index + 1:])

        logger.info("rule_removed", rule_id=rule_id)
        return existing

    def replace_all(self, drafts: Iterable[RuleDraft | Mapping[str, Any]]) -> tuple[Rule, ...]:
        """Replace the whole rule set; all drafts are validated before any change."""
        validated = [validate_draft(data) for data in drafts]
        with self._write_lock:
            rules = tuple(Rule(id=self._new_id(), **draft.model_dump()) for draft in validated)
            self._commit(rules)

        logger.info("rules_replaced", count=len(rules))
        for rule in rules:
            self._warn_if_invalid(rule)
        return rules

    def _locate(self, rule_id: str) -> tuple[int, Rule]:
        for index, rule in enumerate(self._rules):
            if rule.id == rule_id:
                return index, rule
        raise NotFoundError(f"Rule not found: {rule_id}", {"rule_id": rule_id})

    def _new_id(self) -> str:
        existing = {rule.id for rule in self._rules}
        rule_id = self.id_factory.rule_id()
        while rule_id in existing:
            rule_id = self.id_factory.rule_id()
        return rule_id

    def _commit(self, rules: tuple[Rule, ...]) -> None:
        # Caller holds the write lock.
        if self.persistence is not None:
            try:
                self.persistence.save_rules(rules)
            except Exception:
                logger.exception("rule_persistence_failed", count=len(rules))
                raise
        self._rules = rules

    def _warn_if_invalid(self, rule: Rule) -> None:
        error = self.condition_error(rule)
        if error:
            logger.warning("rule_condition_invalid", rule_id=rule.id, error=error)


# =============================================================================
# Decision Log
# =============================================================================


class DecisionLog:
    """Append-only record of past decisions."""

    def __init__(
        self,
        decisions: Iterable[Decision] = (),
        *,
        persistence: DecisionPersistence | None = None,
    ):
        self.persistence = persistence
        self._decisions: tuple[Decision, ...] = tuple(decisions)
        self._write_lock = threading.Lock()

    @classmethod
    def from_persistence(cls, persistence: DecisionPersistence) -> DecisionLog:
        return cls(persistence.load_decisions(), persistence=persistence)

    def append(self, decision: Decision) -> Decision:
        with self._write_lock:
            if self.persistence is not None:
                try:
                    self.persistence.append_decision(decision)
                except Exception:
                    logger.exception("decision_persistence_failed", decision_id=decision.id)
                    raise
            self._decisions = self._decisions + (decision,)
        return decision

    def list(self) -> tuple[Decision, ...]:
        """Return an atomic snapshot of decisions, oldest first."""
        return self._decisions

    def __len__(self) -> int:
        return len(self._decisions)
