"""Rule, decision and conflict models."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_serializer, field_validator


FactValue = Union[str, int, float, bool, None]
FactRecord = Mapping[str, FactValue]

NO_MATCH_RULE_NAME = "No matching rule"
NO_MATCH_REASON = "No active rule matched; flagged for manual review"


# =============================================================================
# Actions
# =============================================================================


class Action(str, Enum):
    """Outcome a rule assigns to the facts it matches."""

    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REVIEW = "REVIEW"


# =============================================================================
# Rules
# =============================================================================


class RuleDraft(BaseModel):
    """A rule as submitted by a caller, before the store assigns an id."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Short human label")
    condition: str = Field(..., description="Boolean expression over fact fields")
    action: Action = Field(..., description="Outcome when the condition matches")
    reason: str = Field("", description="Explanation attached to decisions")
    priority: StrictInt = Field(0, description="Higher priorities evaluate first")
    active: bool = Field(True, description="Inactive rules are kept but never evaluated")

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name must not be blank")
        return value


class Rule(RuleDraft):
    """A stored rule."""

    id: str = Field(..., min_length=1, description="Store-generated identifier")

    def draft(self) -> RuleDraft:
        """Return the caller-supplied part of the rule."""
        return RuleDraft(**self.model_dump(exclude={"id"}))


# =============================================================================
# Decisions
# =============================================================================


class TraceStep(BaseModel):
    """Outcome of evaluating one rule's condition during a decision."""

    model_config = ConfigDict(frozen=True)

    rule_id: str
    condition: str
    result: bool
    error: str | None = None


class Decision(BaseModel):
    """Immutable outcome of one fact evaluation request."""

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    facts: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)
    decision: Action
    matched_rule_id: str | None = None
    rule_name: str
    reason: str
    trace: tuple[TraceStep, ...] = ()

    @field_validator("facts")
    @classmethod
    def _freeze_facts(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))

    @field_serializer("facts")
    def _serialize_facts(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return dict(value)


# =============================================================================
# Conflicts
# =============================================================================


class ConflictType(str, Enum):
    """Relationship between two rules sharing a condition."""

    CONTRADICTORY = "contradictory"
    DUPLICATE = "duplicate"


class Conflict(BaseModel):
    """A detected relationship between two active rules."""

    model_config = ConfigDict(frozen=True)

    type: ConflictType
    rule_ids: tuple[str, str]
    rule_names: tuple[str, str]
    explanation: str
    suggestion: str
