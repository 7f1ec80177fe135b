"""Routes for rule management, decisions and audit queries."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Header

from mizan.config import Settings, get_settings
from mizan.errors import AuthenticationError, ValidationError
from mizan.logging import get_logger
from mizan.rules.extraction import RuleExtractor, get_extractor
from mizan.rules.loader import demo_pack_path, load_rule_pack
from mizan.rules.models import Conflict, Decision, Rule
from mizan.rules.schemas import (
    CandidateRule,
    DecideRequest,
    DeleteResponse,
    DemoLoadResponse,
    ExtractRequest,
    ExtractResponse,
    RuleResponse,
    RulesListResponse,
)
from mizan.rules.service import RulesService
from mizan.rules.store import RuleStore


logger = get_logger(__name__)

# Global instance
_service: RulesService | None = None


def get_service() -> RulesService:
    """Get or create the rules service backed by the database repositories."""
    global _service
    if _service is None:
        from mizan.storage import DecisionRepository, RuleRepository

        _service = RulesService.from_persistence(RuleRepository(), DecisionRepository())
    return _service


def reset_service() -> None:
    """Drop the cached service so the next request reloads from storage."""
    global _service
    _service = None


def extractor_dependency(settings: Settings = Depends(get_settings)) -> RuleExtractor:
    return get_extractor(settings)


def verify_api_key(
    x_api_key: str | None = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject requests carrying a wrong key (or no key, when one is required)."""
    if x_api_key is None:
        if settings.require_api_key:
            raise AuthenticationError("Missing API key")
        return
    if x_api_key != settings.api_key:
        raise AuthenticationError()


router = APIRouter(prefix="/api", dependencies=[Depends(verify_api_key)])


def _rule_response(rule: Rule) -> RuleResponse:
    return RuleResponse(**rule.model_dump(), condition_error=RuleStore.condition_error(rule))


# =============================================================================
# Rules
# =============================================================================


@router.get("/rules", response_model=RulesListResponse, tags=["Rules"])
def list_rules(
    active_only: bool = False, service: RulesService = Depends(get_service)
) -> RulesListResponse:
    """List rules in store order (evaluation order is by priority)."""
    rules = [_rule_response(rule) for rule in service.store.list(active_only=active_only)]
    return RulesListResponse(
        rules=rules,
        total=len(rules),
        invalid=sum(1 for rule in rules if rule.condition_error),
    )


@router.get("/rules/{rule_id}", response_model=RuleResponse, tags=["Rules"])
def get_rule(rule_id: str, service: RulesService = Depends(get_service)) -> RuleResponse:
    return _rule_response(service.store.get(rule_id))


@router.post("/rules", response_model=RuleResponse, status_code=201, tags=["Rules"])
def create_rule(
    payload: dict[str, Any] = Body(...), service: RulesService = Depends(get_service)
) -> RuleResponse:
    """Create a rule. The id is generated; conditions that do not parse are
    stored but reported in ``condition_error``."""
    return _rule_response(service.store.add(payload))


@router.put("/rules/{rule_id}", response_model=RuleResponse, tags=["Rules"])
def update_rule(
    rule_id: str,
    payload: dict[str, Any] = Body(...),
    service: RulesService = Depends(get_service),
) -> RuleResponse:
    """Apply a partial update to a rule."""
    return _rule_response(service.store.update(rule_id, payload))


@router.delete("/rules/{rule_id}", response_model=DeleteResponse, tags=["Rules"])
def delete_rule(rule_id: str, service: RulesService = Depends(get_service)) -> DeleteResponse:
    service.store.remove(rule_id)
    return DeleteResponse()


# =============================================================================
# Decisions and audit
# =============================================================================


@router.post("/decide", response_model=Decision, tags=["Decisions"])
def decide(request: DecideRequest, service: RulesService = Depends(get_service)) -> Decision:
    """Evaluate facts against the active rules; the first match by priority wins."""
    return service.decide(request.facts)


@router.get("/decisions", response_model=list[Decision], tags=["Audit"])
def list_decisions(service: RulesService = Depends(get_service)) -> list[Decision]:
    return list(service.list_decisions())


@router.get("/conflicts", response_model=list[Conflict], tags=["Audit"])
def list_conflicts(service: RulesService = Depends(get_service)) -> list[Conflict]:
    """Contradictory or duplicate active rules."""
    return service.conflicts()


# =============================================================================
# Extraction
# =============================================================================


@router.post("/extract", response_model=ExtractResponse, tags=["Extraction"])
def extract_rules(
    request: ExtractRequest, extractor: RuleExtractor = Depends(extractor_dependency)
) -> ExtractResponse:
    """Propose rule candidates from policy text. Nothing is saved."""
    if not request.text.strip():
        raise ValidationError("No policy text provided", {"field": "text"})

    drafts = extractor.extract(request.text)
    logger.info("rules_extracted", source=extractor.source, count=len(drafts))
    return ExtractResponse(
        rules=[
            CandidateRule(**draft.model_dump(), condition_error=RuleStore.condition_error(draft))
            for draft in drafts
        ],
        source=extractor.source,
    )


# =============================================================================
# Demo data
# =============================================================================


@router.post("/demo/load", response_model=DemoLoadResponse, tags=["Demo"])
def load_demo(service: RulesService = Depends(get_service)) -> DemoLoadResponse:
    """Replace the rule set with the bundled demo pack."""
    rules = service.store.replace_all(load_rule_pack(demo_pack_path()))
    return DemoLoadResponse(rules_loaded=len(rules))


@router.post("/demo/reset", response_model=DeleteResponse, tags=["Demo"])
def reset_demo(service: RulesService = Depends(get_service)) -> DeleteResponse:
    """Remove all rules. The decision log is append-only and is kept."""
    service.store.replace_all([])
    return DeleteResponse()
