"""Rules domain - condition language, rule store, decision engine and conflict analysis."""

from mizan.rules.conflicts import find_conflicts
from mizan.rules.engine import DecisionEngine, order_candidates
from mizan.rules.expression import (
    evaluate,
    normalize_condition,
    parse,
    validate_condition,
)
from mizan.rules.ids import IdFactory, utc_now
from mizan.rules.loader import demo_pack_path, load_rule_pack, parse_rule_pack
from mizan.rules.models import (
    Action,
    Conflict,
    ConflictType,
    Decision,
    FactRecord,
    Rule,
    RuleDraft,
    TraceStep,
)
from mizan.rules.service import RulesService
from mizan.rules.store import (
    DecisionLog,
    DecisionPersistence,
    RulePersistence,
    RuleStore,
    validate_draft,
)

__all__ = [
    # Models
    "Action",
    "Conflict",
    "ConflictType",
    "Decision",
    "FactRecord",
    "Rule",
    "RuleDraft",
    "TraceStep",
    # Condition language
    "evaluate",
    "normalize_condition",
    "parse",
    "validate_condition",
    # Store
    "DecisionLog",
    "DecisionPersistence",
    "RulePersistence",
    "RuleStore",
    "validate_draft",
    # Engine and analysis
    "DecisionEngine",
    "order_candidates",
    "find_conflicts",
    "RulesService",
    # Ids
    "IdFactory",
    "utc_now",
    # Rule packs
    "demo_pack_path",
    "load_rule_pack",
    "parse_rule_pack",
]
