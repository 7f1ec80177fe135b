"""Repositories package for storage domain."""

from mizan.storage.repositories.decision_repo import DecisionRepository
from mizan.storage.repositories.rule_repo import RuleRepository

__all__ = [
    "DecisionRepository",
    "RuleRepository",
]
