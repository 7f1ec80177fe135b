"""Pydantic models for rules domain API requests and responses."""

from __future__ import annotations

from typing import Union

from pydantic import BaseModel, Field

from mizan.rules.models import Rule, RuleDraft


FactInput = Union[str, int, float, bool, None]


# =============================================================================
# Rules
# =============================================================================


class RuleResponse(Rule):
    """A stored rule with its condition validity."""

    condition_error: str | None = Field(
        None, description="Parse error when the condition is not in the grammar"
    )


class RulesListResponse(BaseModel):
    """Response listing rules."""

    rules: list[RuleResponse]
    total: int
    invalid: int = Field(0, description="Number of rules whose condition does not parse")


class DeleteResponse(BaseModel):
    success: bool = True


# =============================================================================
# Decisions
# =============================================================================


class DecideRequest(BaseModel):
    """Request for a decision over a flat fact record."""

    facts: dict[str, FactInput] = Field(..., description="Field name to scalar value")


# =============================================================================
# Extraction
# =============================================================================


class ExtractRequest(BaseModel):
    text: str = Field("", description="Free-text policy document")


class CandidateRule(RuleDraft):
    """An unsaved extraction candidate."""

    condition_error: str | None = None


class ExtractResponse(BaseModel):
    rules: list[CandidateRule]
    source: str


# =============================================================================
# Demo data
# =============================================================================


class DemoLoadResponse(BaseModel):
    success: bool = True
    rules_loaded: int
