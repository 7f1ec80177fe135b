"""Tests for the SQL-backed rule and decision repositories."""

from mizan.rules import Action, RulesService
from mizan.rules.router import get_service, reset_service
from mizan.storage import (
    DecisionRepository,
    RuleRepository,
    get_table_stats,
    init_db,
    reset_db,
)


class TestDatabase:
    def test_tables_created(self, temp_database):
        assert temp_database.exists()
        assert get_table_stats() == {"rules": 0, "decisions": 0}

    def test_init_is_idempotent(self, temp_database):
        init_db()
        init_db()
        assert get_table_stats() == {"rules": 0, "decisions": 0}

    def test_reset_db(self, temp_database, make_rule):
        RuleRepository().save_rules([make_rule("a == 1")])
        reset_db()
        assert get_table_stats()["rules"] == 0


class TestRuleRepository:
    def test_save_and_load(self, temp_database, make_rule):
        repo = RuleRepository()
        rules = [
            make_rule("amount > 1000", Action.REVIEW, priority=3, reason="Large"),
            make_rule("country == 'SA'", Action.APPROVED, priority=-1, active=False),
            make_rule("(broken", Action.REJECTED),
        ]

        repo.save_rules(rules)

        assert repo.load_rules() == rules

    def test_save_replaces(self, temp_database, make_rule):
        repo = RuleRepository()
        repo.save_rules([make_rule("a == 1"), make_rule("b == 2")])
        remaining = [make_rule("c == 3")]
        repo.save_rules(remaining)
        assert repo.load_rules() == remaining

    def test_save_empty(self, temp_database, make_rule):
        repo = RuleRepository()
        repo.save_rules([make_rule("a == 1")])
        repo.save_rules([])
        assert repo.load_rules() == []

    def test_load_keeps_store_order(self, temp_database, make_rule):
        repo = RuleRepository()
        rules = [make_rule("a == 1", id="r-z"), make_rule("a == 1", id="r-a")]
        repo.save_rules(rules)
        assert [rule.id for rule in repo.load_rules()] == ["r-z", "r-a"]

    def test_count_rules(self, temp_database, make_rule):
        repo = RuleRepository()
        repo.save_rules([make_rule("a == 1"), make_rule("a == 1", active=False)])
        assert repo.count_rules() == 1
        assert repo.count_rules(active_only=False) == 2


class TestDecisionRepository:
    def test_append_and_load(self, temp_database, engine, make_rule):
        repo = DecisionRepository()
        rules = [make_rule("(broken", priority=2), make_rule("country == 'SA'", Action.APPROVED)]
        first = engine.decide({"country": "SA", "amount": 1.5, "verified": True, "note": None}, rules)
        second = engine.decide({"country": "مصر"}, rules)

        repo.append_decision(first)
        repo.append_decision(second)

        assert repo.load_decisions() == [first, second]
        assert repo.load_decisions()[0].trace[0].error is not None

    def test_get_decision(self, temp_database, engine):
        repo = DecisionRepository()
        decision = engine.decide({"a": 1}, [])
        repo.append_decision(decision)
        assert repo.get_decision(decision.id) == decision
        assert repo.get_decision("d-missing") is None


class TestServiceWithDatabase:
    def test_state_survives_restart(self, temp_database, id_factory):
        service = RulesService.from_persistence(
            RuleRepository(), DecisionRepository(), id_factory=id_factory
        )
        rule = service.store.add({"name": "Big", "condition": "amount > 1000", "action": "REVIEW"})
        decision = service.decide({"amount": 5000})

        restarted = RulesService.from_persistence(RuleRepository(), DecisionRepository())

        assert restarted.store.list() == (rule,)
        assert restarted.list_decisions() == (decision,)
        assert get_table_stats() == {"rules": 1, "decisions": 1}


class TestServiceSingleton:
    def test_get_service_writes_to_database(self, temp_database):
        reset_service()
        try:
            service = get_service()
            assert get_service() is service

            service.store.add({"name": "Big", "condition": "amount > 1000", "action": "REVIEW"})
            service.decide({"amount": 5000})

            reset_service()
            reloaded = get_service()
            assert reloaded is not service
            assert [rule.name for rule in reloaded.store.list()] == ["Big"]
            assert len(reloaded.list_decisions()) == 1
        finally:
            reset_service()
