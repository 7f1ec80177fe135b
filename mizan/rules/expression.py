"""
Restricted condition language for rules.

Conditions are boolean expressions over a flat fact record:

    amount > 1000 AND (country == 'SA' OR NOT verified == true)

Only comparisons between a fact field and a literal, combined with
AND / OR / NOT and parentheses, are supported. Field names are
identifiers in any script (``amount``, ``المبلغ``). Conditions are tokenized and
parsed into a small tree, then evaluated against the facts; rule text is
never handed to the host interpreter.

For conditions written against the legacy service, ``&&``, ``||``, ``!``,
``===`` and ``!==`` are accepted as aliases of AND, OR, NOT, ``==`` and ``!=``.
"""

from __future__ import annotations

import operator
import re
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Union

from mizan.errors import ConditionParseError


MAX_NESTING_DEPTH = 64


# =============================================================================
# Tokens
# =============================================================================


_TOKEN_PATTERN = re.compile(
    r"""
    (?P<ws>\s+)
    | (?P<number>-?\d+(?:\.\d+)?)
    | (?P<string>'(?:\\.|[^'\\])*'|"(?:\\.|[^"\\])*")
    | (?P<op>===|!==|==|!=|>=|<=|>|<)
    | (?P<and>&&)
    | (?P<or>\|\|)
    | (?P<not>!)
    | (?P<lparen>\()
    | (?P<rparen>\))
    | (?P<name>[^\W\d]\w*)
    """,
    re.VERBOSE,
)

_KEYWORDS = {"and": "and", "or": "or", "not": "not", "true": "bool", "false": "bool"}

_OP_ALIASES = {"===": "==", "!==": "!="}

_STRING_ESCAPE = re.compile(r"\\(.)", re.DOTALL)


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int
    value: Any = None


def tokenize(source: str) -> list[Token]:
    """Split a condition into tokens, ending with an ``end`` token."""
    tokens: list[Token] = []
    pos = 0
    while pos < len(source):
        match = _TOKEN_PATTERN.match(source, pos)
        if match is None:
            if source[pos] in "'\"":
                raise ConditionParseError("Unterminated string literal", source[pos:], pos)
            raise ConditionParseError("Unexpected character", source[pos], pos)

        kind = match.lastgroup
        text = match.group()
        if kind == "number":
            value: Any = float(text) if "." in text else int(text)
            tokens.append(Token("number", text, pos, value))
        elif kind == "string":
            tokens.append(Token("string", text, pos, _STRING_ESCAPE.sub(r"\1", text[1:-1])))
        elif kind == "op":
            tokens.append(Token("op", text, pos, _OP_ALIASES.get(text, text)))
        elif kind == "name":
            keyword = _KEYWORDS.get(text.lower())
            if keyword == "bool":
                tokens.append(Token("bool", text, pos, text.lower() == "true"))
            elif keyword:
                tokens.append(Token(keyword, text, pos))
            else:
                tokens.append(Token("name", text, pos, text))
        elif kind != "ws":
            tokens.append(Token(kind, text, pos))
        pos = match.end()

    tokens.append(Token("end", "", len(source)))
    return tokens


# =============================================================================
# Syntax tree
# =============================================================================


@dataclass(frozen=True)
class Comparison:
    """``field op literal``; literal-first comparisons are flipped on parse."""

    field: str
    op: str
    value: str | int | float | bool


@dataclass(frozen=True)
class And:
    operands: tuple[Node, ...]


@dataclass(frozen=True)
class Or:
    operands: tuple[Node, ...]


@dataclass(frozen=True)
class Not:
    operand: Node


Node = Union[Comparison, And, Or, Not]

_FLIPPED_OPS = {"==": "==", "!=": "!=", "<": ">", ">": "<", "<=": ">=", ">=": "<="}

_LITERAL_KINDS = ("number", "string", "bool")


# =============================================================================
# Parser
# =============================================================================


class _Parser:
    """Recursive-descent parser; precedence is NOT > AND > OR."""

    def __init__(self, source: str):
        self.source = source
        self.tokens = tokenize(source)
        self.index = 0
        self.depth = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def advance(self) -> Token:
        token = self.tokens[self.index]
        if token.kind != "end":
            self.index += 1
        return token

    def error(self, message: str, token: Token | None = None) -> ConditionParseError:
        token = token or self.current
        if token.kind == "end":
            start = self.tokens[self.index - 1].position if self.index else 0
            return ConditionParseError(message, self.source[start:], token.position)
        return ConditionParseError(message, token.text, token.position)

    def parse(self) -> Node:
        if self.current.kind == "end":
            raise ConditionParseError("Empty condition", self.source, 0)
        node = self.parse_or()
        if self.current.kind != "end":
            if self.current.kind == "rparen":
                raise self.error("Unbalanced closing parenthesis")
            raise self.error("Unexpected token")
        return node

    def parse_or(self) -> Node:
        operands = [self.parse_and()]
        while self.current.kind == "or":
            self.advance()
            operands.append(self.parse_and())
        return operands[0] if len(operands) == 1 else Or(tuple(operands))

    def parse_and(self) -> Node:
        operands = [self.parse_not()]
        while self.current.kind == "and":
            self.advance()
            operands.append(self.parse_not())
        return operands[0] if len(operands) == 1 else And(tuple(operands))

    def parse_not(self) -> Node:
        if self.current.kind == "not":
            self._enter(self.advance())
            node = Not(self.parse_not())
            self.depth -= 1
            return node
        return self.parse_primary()

    def parse_primary(self) -> Node:
        token = self.current
        if token.kind == "lparen":
            self._enter(self.advance())
            node = self.parse_or()
            if self.current.kind != "rparen":
                raise ConditionParseError(
                    "Unbalanced parenthesis", self.source[token.position:], token.position
                )
            self.advance()
            self.depth -= 1
            return node
        return self.parse_comparison()

    def parse_comparison(self) -> Comparison:
        left = self.advance()
        if left.kind not in ("name",) + _LITERAL_KINDS:
            raise self.error("Expected a field or literal", left)

        op = self.advance()
        if op.kind != "op":
            raise self.error("Expected a comparison operator", op)

        right = self.advance()
        if right.kind not in ("name",) + _LITERAL_KINDS:
            raise self.error("Expected a field or literal", right)

        if left.kind == "name" and right.kind in _LITERAL_KINDS:
            return Comparison(left.value, op.value, right.value)
        if left.kind in _LITERAL_KINDS and right.kind == "name":
            return Comparison(right.value, _FLIPPED_OPS[op.value], left.value)
        if left.kind == "name":
            raise self.error("Comparisons between two fields are not supported", right)
        raise self.error("Comparison must reference a fact field", left)

    def _enter(self, token: Token) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING_DEPTH:
            raise self.error("Condition nested too deeply", token)


@lru_cache(maxsize=1024)
def parse(condition: str) -> Node:
    """Parse a condition string into a syntax tree.

    Raises:
        ConditionParseError: if the condition is not in the grammar
    """
    return _Parser(condition).parse()


def validate_condition(condition: str) -> ConditionParseError | None:
    """Return the parse error for a condition, or None if it is valid."""
    try:
        parse(condition)
    except ConditionParseError as exc:
        return exc
    return None


def normalize_condition(condition: str) -> str:
    """Normalize a condition for literal comparison (trimmed, case-folded)."""
    return condition.strip().casefold()


# =============================================================================
# Evaluation
# =============================================================================


_ORDERING: dict[str, Callable[[Any, Any], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _kind(value: Any) -> str | None:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return None


def compare(op: str, actual: Any, expected: Any) -> bool:
    """Compare a fact value with a literal.

    Absent (None) or non-scalar fact values never match. Equality is
    type-strict, and ordering between different kinds is false.
    """
    actual_kind = _kind(actual)
    if actual_kind is None:
        return False

    same_kind = actual_kind == _kind(expected)
    if op == "==":
        return same_kind and actual == expected
    if op == "!=":
        return not (same_kind and actual == expected)
    if not same_kind or actual_kind == "bool":
        return False
    return _ORDERING[op](actual, expected)


def evaluate_node(node: Node, facts: Mapping[str, Any]) -> bool:
    """Evaluate a parsed condition against facts."""
    if isinstance(node, Comparison):
        return compare(node.op, facts.get(node.field), node.value)
    if isinstance(node, And):
        return all(evaluate_node(operand, facts) for operand in node.operands)
    if isinstance(node, Or):
        return any(evaluate_node(operand, facts) for operand in node.operands)
    return not evaluate_node(node.operand, facts)


def evaluate(condition: str, facts: Mapping[str, Any]) -> bool:
    """Evaluate a condition string against a fact record.

    Args:
        condition: Condition in the restricted grammar
        facts: Flat mapping of field name to scalar value

    Returns:
        Whether the facts satisfy the condition

    Raises:
        ConditionParseError: if the condition does not parse
    """
    return evaluate_node(parse(condition), facts)
