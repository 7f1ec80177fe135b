"""In-memory persistence, for tests and ephemeral deployments."""

from __future__ import annotations

import threading
from collections.abc import Sequence

from mizan.rules.models import Decision, Rule


class InMemoryPersistence:
    """Keeps rules and decisions in process memory.

    Implements both the rule and decision persistence collaborators.
    """

    def __init__(self, rules: Sequence[Rule] = (), decisions: Sequence[Decision] = ()):
        self._rules = list(rules)
        self._decisions = list(decisions)
        self._lock = threading.Lock()
        self.save_count = 0

    def load_rules(self) -> list[Rule]:
        with self._lock:
            return list(self._rules)

    def save_rules(self, rules: Sequence[Rule]) -> None:
        with self._lock:
            self._rules = list(rules)
            self.save_count += 1

    def load_decisions(self) -> list[Decision]:
        with self._lock:
            return list(self._decisions)

    def append_decision(self, decision: Decision) -> None:
        with self._lock:
            self._decisions.append(decision)
