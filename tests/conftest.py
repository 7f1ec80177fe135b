"""Pytest fixtures for test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from mizan.config import Settings, get_settings
from mizan.main import app
from mizan.rules import (
    Action,
    DecisionEngine,
    DecisionLog,
    IdFactory,
    Rule,
    RuleStore,
    RulesService,
)
from mizan.rules.extraction import HeuristicExtractor
from mizan.rules.router import extractor_dependency, get_service
from mizan.storage import InMemoryPersistence, init_db, reset_engine, set_db_path


# =============================================================================
# Deterministic ids and time
# =============================================================================


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 15, 9, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def id_factory(clock: FixedClock) -> IdFactory:
    """Id factory with a fixed clock and suffix."""
    return IdFactory(clock=clock, suffix=lambda: "test")


@pytest.fixture
def engine(id_factory: IdFactory) -> DecisionEngine:
    return DecisionEngine(id_factory=id_factory)


# =============================================================================
# Rules
# =============================================================================


@pytest.fixture
def make_rule() -> Callable[..., Rule]:
    """Build stored rules with sequential ids (r-1, r-2, ...)."""
    counter = {"n": 0}

    def _make(
        condition: str,
        action: Action | str = Action.APPROVED,
        priority: int = 0,
        active: bool = True,
        name: str | None = None,
        **extra: Any,
    ) -> Rule:
        counter["n"] += 1
        return Rule(
            id=extra.pop("id", f"r-{counter['n']}"),
            name=name or f"Rule {counter['n']}",
            condition=condition,
            action=action,
            reason=extra.pop("reason", f"Reason {counter['n']}"),
            priority=priority,
            active=active,
        )

    return _make


@pytest.fixture
def persistence() -> InMemoryPersistence:
    return InMemoryPersistence()


@pytest.fixture
def rule_store(persistence: InMemoryPersistence, id_factory: IdFactory) -> RuleStore:
    """Empty store writing through to in-memory persistence."""
    return RuleStore(persistence=persistence, id_factory=id_factory)


@pytest.fixture
def service(
    rule_store: RuleStore, persistence: InMemoryPersistence, engine: DecisionEngine
) -> RulesService:
    return RulesService(
        store=rule_store,
        decisions=DecisionLog(persistence=persistence),
        engine=engine,
    )


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def temp_database(tmp_path: Path):
    """Use a temporary SQLite database for each test."""
    db_path = tmp_path / "mizan_test.db"
    set_db_path(db_path)
    init_db()
    yield db_path
    reset_engine()


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def api_settings() -> Settings:
    return Settings(api_key="test-key", require_api_key=False, openai_api_key=None)


@pytest.fixture
def client(service: RulesService, api_settings: Settings):
    """Test client wired to an in-memory service."""
    app.dependency_overrides[get_service] = lambda: service
    app.dependency_overrides[get_settings] = lambda: api_settings
    app.dependency_overrides[extractor_dependency] = HeuristicExtractor
    yield TestClient(app)
    app.dependency_overrides.clear()
