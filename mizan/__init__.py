"""Mizan - a rule-based decision engine with a safe condition language."""

__version__ = "0.1.0"
