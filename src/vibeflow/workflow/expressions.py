"""
Template interpolation and restricted condition expressions.

Templates use ``{{key}}`` placeholders resolved against a bindings map.
Conditions are parsed into a small AST and evaluated by a tree-walking
interpreter; nothing is ever handed to ``eval``.

Grammar::

    expr       := and_expr (("||" | "or") and_expr)*
    and_expr   := not_expr (("&&" | "and") not_expr)*
    not_expr   := ("!" | "not") not_expr | comparison
    comparison := operand (CMP operand)?
    operand    := NUMBER | STRING | KEYWORD | PLACEHOLDER | IDENT | "(" expr ")"

Placeholders inside quoted strings are interpolated. A bare placeholder
evaluates to its bound value, read as a number or keyword literal when it
is a string that spells one.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .errors import InvalidCondition


PLACEHOLDER_RE = re.compile(r"\{\{([\w.-]+)\}\}")

_MISSING = object()
_MAX_DEPTH = 64

_KEYWORDS: Dict[str, Any] = {
    "true": True,
    "True": True,
    "false": False,
    "False": False,
    "null": None,
    "None": None,
}

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<placeholder>\{\{[\w.-]+\}\})
  | (?P<number>-?\d+(?:\.\d+)?)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<op>===|!==|==|!=|<=|>=|&&|\|\||<|>|!|\(|\))
  | (?P<ident>[A-Za-z_][\w-]*(?:\.[\w-]+)*)
    """,
    re.VERBOSE,
)

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")

_COMPARISONS = {"==", "!=", "===", "!==", "<", "<=", ">", ">="}


class ExpressionError(ValueError):
    """Raised for malformed or unevaluable expressions."""

    pass


# ---------------------------------------------------------------------------
# Binding lookup and interpolation
# ---------------------------------------------------------------------------

def lookup(bindings: Mapping[str, Any], key: str) -> Any:
    """
    Resolve ``key`` in ``bindings``.

    An exact key wins; otherwise a dotted key walks into nested mappings
    (``llm-1.content``). Returns the module sentinel when nothing matches.
    """
    if key in bindings:
        return bindings[key]

    head, sep, rest = key.partition(".")
    while sep:
        if head in bindings:
            value = bindings[head]
            for part in rest.split("."):
                if isinstance(value, Mapping) and part in value:
                    value = value[part]
                else:
                    return _MISSING
            return value
        # Node ids may themselves contain dots
        more_head, sep, rest = rest.partition(".")
        head = f"{head}.{more_head}"
    return _MISSING


def to_text(value: Any) -> str:
    """String form of a bound value as it appears in templates."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str, separators=(",", ":"))
    return str(value)


def interpolate(template: str, bindings: Mapping[str, Any]) -> str:
    """
    Replace ``{{key}}`` placeholders with bound values.

    Unmatched placeholders are left verbatim.
    """
    if not isinstance(template, str):
        return to_text(template)

    def _replace(match: re.Match) -> str:
        value = lookup(bindings, match.group(1))
        if value is _MISSING:
            return match.group(0)
        return to_text(value)

    return PLACEHOLDER_RE.sub(_replace, template)


def resolve(value: Any, bindings: Mapping[str, Any]) -> Any:
    """Interpolate every string inside ``value``, walking dicts and lists."""
    if isinstance(value, str):
        return interpolate(value, bindings)
    if isinstance(value, dict):
        return {key: resolve(item, bindings) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve(item, bindings) for item in value]
    return value


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Name:
    key: str
    placeholder: bool = False


@dataclass(frozen=True)
class Compare:
    op: str
    left: "Expr"
    right: "Expr"


@dataclass(frozen=True)
class BoolOp:
    op: str  # "and" | "or"
    operands: Tuple["Expr", ...]


@dataclass(frozen=True)
class Not:
    operand: "Expr"


Expr = Union[Literal, Name, Compare, BoolOp, Not]


# ---------------------------------------------------------------------------
# Tokenizer / parser
# ---------------------------------------------------------------------------

def _unescape(body: str) -> str:
    return re.sub(
        r"\\(.)",
        lambda m: {"n": "\n", "t": "\t"}.get(m.group(1), m.group(1)),
        body,
    )


def tokenize(
    text: str,
    bindings: Optional[Mapping[str, Any]] = None,
) -> List[Tuple[str, Any]]:
    """
    Split an expression into ``(kind, value)`` tokens.

    With ``bindings``, placeholders inside quoted strings are interpolated.
    """
    tokens: List[Tuple[str, Any]] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ExpressionError(f"Unexpected character {text[pos]!r} at {pos}")
        pos = match.end()
        kind = match.lastgroup
        raw = match.group(kind)

        if kind == "ws":
            continue
        if kind == "placeholder":
            tokens.append(("name", Name(raw[2:-2], placeholder=True)))
        elif kind == "number":
            tokens.append(("literal", Literal(float(raw) if "." in raw else int(raw))))
        elif kind == "string":
            body = _unescape(raw[1:-1])
            if bindings is not None:
                body = interpolate(body, bindings)
            tokens.append(("literal", Literal(body)))
        elif kind == "op":
            tokens.append(("op", raw))
        elif raw in ("and", "or", "not"):
            tokens.append(("op", raw))
        elif raw in _KEYWORDS:
            tokens.append(("literal", Literal(_KEYWORDS[raw])))
        else:
            tokens.append(("name", Name(raw)))
    return tokens


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, tokens: List[Tuple[str, Any]]):
        self._tokens = tokens
        self._pos = 0
        self._depth = 0

    def parse(self) -> Expr:
        if not self._tokens:
            raise ExpressionError("Empty expression")
        expr = self._or()
        if self._pos != len(self._tokens):
            raise ExpressionError(f"Unexpected token {self._tokens[self._pos][1]!r}")
        return expr

    def _peek_op(self) -> str | None:
        if self._pos < len(self._tokens) and self._tokens[self._pos][0] == "op":
            return self._tokens[self._pos][1]
        return None

    def _or(self) -> Expr:
        operands = [self._and()]
        while self._peek_op() in ("||", "or"):
            self._pos += 1
            operands.append(self._and())
        return operands[0] if len(operands) == 1 else BoolOp("or", tuple(operands))

    def _and(self) -> Expr:
        operands = [self._not()]
        while self._peek_op() in ("&&", "and"):
            self._pos += 1
            operands.append(self._not())
        return operands[0] if len(operands) == 1 else BoolOp("and", tuple(operands))

    def _not(self) -> Expr:
        if self._peek_op() in ("!", "not"):
            self._pos += 1
            self._enter()
            try:
                return Not(self._not())
            finally:
                self._depth -= 1
        return self._comparison()

    def _comparison(self) -> Expr:
        left = self._operand()
        op = self._peek_op()
        if op in _COMPARISONS:
            self._pos += 1
            return Compare(op, left, self._operand())
        return left

    def _operand(self) -> Expr:
        if self._pos >= len(self._tokens):
            raise ExpressionError("Unexpected end of expression")
        kind, value = self._tokens[self._pos]
        self._pos += 1

        if kind in ("literal", "name"):
            return value
        if value == "(":
            self._enter()
            try:
                expr = self._or()
            finally:
                self._depth -= 1
            if self._peek_op() != ")":
                raise ExpressionError("Unbalanced parentheses")
            self._pos += 1
            return expr
        raise ExpressionError(f"Unexpected token {value!r}")

    def _enter(self) -> None:
        self._depth += 1
        if self._depth > _MAX_DEPTH:
            raise ExpressionError("Expression nested too deeply")


def parse_expression(text: str, bindings: Optional[Mapping[str, Any]] = None) -> Expr:
    """Parse ``text`` into an expression tree."""
    return _Parser(tokenize(text, bindings)).parse()


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_number(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return float(value) if "." in value else int(value)
        except ValueError:
            return value
    return value


def _from_text(value: Any) -> Any:
    """Read a bound string as the literal it spells once interpolated."""
    if not isinstance(value, str):
        return value
    text = value.strip()
    if text in _KEYWORDS:
        return _KEYWORDS[text]
    if _NUMBER_RE.fullmatch(text):
        return float(text) if "." in text else int(text)
    return value


def _coerce_pair(left: Any, right: Any) -> Tuple[Any, Any]:
    """Coerce a numeric string when the other side is a number."""
    if _is_number(left) and isinstance(right, str):
        return left, _as_number(right)
    if _is_number(right) and isinstance(left, str):
        return _as_number(left), right
    return left, right


def _compare(op: str, left: Any, right: Any) -> bool:
    if op == "===":
        return type(left) is type(right) and left == right
    if op == "!==":
        return not (type(left) is type(right) and left == right)

    left, right = _coerce_pair(left, right)
    if op == "==":
        return left == right
    if op == "!=":
        return left != right

    try:
        if op == "<":
            return left < right
        if op == "<=":
            return left <= right
        if op == ">":
            return left > right
        return left >= right
    except TypeError as exc:
        raise ExpressionError(
            f"Cannot compare {type(left).__name__} with {type(right).__name__}"
        ) from exc


def evaluate(expr: Expr, bindings: Mapping[str, Any]) -> Any:
    """Evaluate an expression tree against ``bindings``."""
    if isinstance(expr, Literal):
        return expr.value
    if isinstance(expr, Name):
        value = lookup(bindings, expr.key)
        if value is _MISSING:
            raise ExpressionError(f"Unknown identifier: {expr.key}")
        return _from_text(value) if expr.placeholder else value
    if isinstance(expr, Not):
        return not evaluate(expr.operand, bindings)
    if isinstance(expr, BoolOp):
        if expr.op == "and":
            return all(evaluate(operand, bindings) for operand in expr.operands)
        return any(evaluate(operand, bindings) for operand in expr.operands)
    if isinstance(expr, Compare):
        return _compare(
            expr.op,
            evaluate(expr.left, bindings),
            evaluate(expr.right, bindings),
        )
    raise ExpressionError(f"Unsupported expression node: {expr!r}")


def evaluate_condition(expression: str, bindings: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Evaluate a condition against ``bindings``.

    Returns:
        ``{"expression": <interpolated text>, "result": bool}``

    Raises:
        InvalidCondition: if the expression is malformed or cannot be evaluated
    """
    if not isinstance(expression, str):
        raise InvalidCondition(f"Invalid condition: {expression!r}")

    try:
        result = bool(evaluate(parse_expression(expression, bindings), bindings))
    except ExpressionError as exc:
        raise InvalidCondition(f"Invalid condition: {expression}") from exc

    return {"expression": interpolate(expression, bindings), "result": result}


__all__ = [
    "ExpressionError",
    "evaluate",
    "evaluate_condition",
    "interpolate",
    "lookup",
    "parse_expression",
    "resolve",
    "to_text",
]
