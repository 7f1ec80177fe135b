"""Storage domain - database and persistence collaborators for rules and decisions."""

from mizan.storage.database import (
    get_db,
    get_db_path,
    set_db_path,
    get_engine,
    reset_engine,
    init_db,
    reset_db,
    get_table_stats,
)
from mizan.storage.memory import InMemoryPersistence
from mizan.storage.repositories import DecisionRepository, RuleRepository

__all__ = [
    # Database
    "get_db",
    "get_db_path",
    "set_db_path",
    "get_engine",
    "reset_engine",
    "init_db",
    "reset_db",
    "get_table_stats",
    # Persistence collaborators
    "InMemoryPersistence",
    "DecisionRepository",
    "RuleRepository",
]
