"""
Condition Expressions - Sandboxed boolean expressions for condition nodes

A small hand-written recursive-descent evaluator. Expressions are never handed
to ``eval``; only literals, name lookups, comparisons and boolean connectives
are understood.

Grammar::

    expr       := or_expr
    or_expr    := and_expr (("||" | "or") and_expr)*
    and_expr   := not_expr (("&&" | "and") not_expr)*
    not_expr   := ("!" | "not") not_expr | comparison
    comparison := primary (COMPARE_OP primary)?
    primary    := NUMBER | STRING | true | false | null | "-" primary
                | IDENT ("." IDENT)* | "(" expr ")"

``COMPARE_OP`` is one of ``== === != !== < <= > >= contains``.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .errors import ExpressionError

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>\d+(?:\.\d+)?)
  | (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
  | (?P<op>===|!==|==|!=|<=|>=|&&|\|\||[<>!().-])
  | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
    """,
    re.VERBOSE,
)

_COMPARE_OPS = {"==", "===", "!=", "!==", "<", "<=", ">", ">=", "contains"}
_WORD_OPS = {"and", "or", "not", "contains"}
_LITERALS = {"true": True, "false": False, "null": None, "none": None}


@dataclass
class Token:
    kind: str  # number | string | op | ident | end
    value: Any
    pos: int


def tokenize(source: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if not match:
            raise ExpressionError(f"Unexpected character {source[pos]!r} at position {pos}")
        kind = match.lastgroup
        text = match.group()
        if kind == "number":
            tokens.append(Token("number", float(text) if "." in text else int(text), pos))
        elif kind == "string":
            body = text[1:-1]
            tokens.append(Token("string", re.sub(r"\\(.)", r"\1", body), pos))
        elif kind == "ident":
            lowered = text.lower()
            if lowered in _WORD_OPS:
                tokens.append(Token("op", lowered, pos))
            else:
                tokens.append(Token("ident", text, pos))
        elif kind == "op":
            tokens.append(Token("op", text, pos))
        pos = match.end()
    tokens.append(Token("end", None, pos))
    return tokens


class _Parser:
    def __init__(self, source: str, scope: Mapping[str, Any]):
        self.source = source
        self.tokens = tokenize(source)
        self.index = 0
        self.scope = scope

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _accept(self, *values: str) -> Optional[Token]:
        token = self.current
        if token.kind == "op" and token.value in values:
            self.index += 1
            return token
        return None

    def _expect(self, value: str) -> None:
        if not self._accept(value):
            raise ExpressionError(f"Expected {value!r} at position {self.current.pos}")

    def parse(self) -> Any:
        if self.current.kind == "end":
            raise ExpressionError("Empty expression")
        value = self.or_expr()
        if self.current.kind != "end":
            raise ExpressionError(f"Unexpected token {self.current.value!r} at position {self.current.pos}")
        return value

    # Each level takes a ``live`` flag. Operands skipped by short-circuiting
    # are still parsed, so syntax errors surface, but never looked up or
    # compared.

    def or_expr(self, live: bool = True) -> Any:
        value = self.and_expr(live)
        while self._accept("||", "or"):
            right_live = live and not value
            right = self.and_expr(right_live)
            if right_live:
                value = right
        return value

    def and_expr(self, live: bool = True) -> Any:
        value = self.not_expr(live)
        while self._accept("&&", "and"):
            right_live = live and bool(value)
            right = self.not_expr(right_live)
            if right_live:
                value = right
        return value

    def not_expr(self, live: bool = True) -> Any:
        if self._accept("!", "not"):
            value = self.not_expr(live)
            return not value if live else None
        return self.comparison(live)

    def comparison(self, live: bool = True) -> Any:
        left = self.primary(live)
        token = self.current
        if token.kind == "op" and token.value in _COMPARE_OPS:
            self.index += 1
            right = self.primary(live)
            return _compare(token.value, left, right) if live else None
        return left

    def primary(self, live: bool = True) -> Any:
        token = self.current
        if token.kind in ("number", "string"):
            self.index += 1
            return token.value
        if self._accept("-"):
            value = self.primary(live)
            if not live:
                return None
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ExpressionError(f"Cannot negate {type(value).__name__} at position {token.pos}")
            return -value
        if token.kind == "ident":
            self.index += 1
            lowered = token.value.lower()
            if lowered in _LITERALS:
                return _LITERALS[lowered]
            value = self.scope.get(token.value) if live else None
            while self._accept("."):
                attr = self.current
                if attr.kind != "ident":
                    raise ExpressionError(f"Expected a name after '.' at position {attr.pos}")
                self.index += 1
                if live:
                    value = _lookup(value, attr.value)
            return value
        if self._accept("("):
            value = self.or_expr(live)
            self._expect(")")
            return value
        if token.kind == "end":
            raise ExpressionError("Unexpected end of expression")
        raise ExpressionError(f"Unexpected token {token.value!r} at position {token.pos}")


def _lookup(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name)
    return None


def _compare(op: str, left: Any, right: Any) -> bool:
    if op in ("==", "==="):
        return left == right
    if op in ("!=", "!=="):
        return left != right
    if op == "contains":
        if left is None:
            return False
        try:
            return right in left
        except TypeError as e:
            raise ExpressionError(f"Cannot check containment: {e}")
    try:
        if op == "<":
            return left < right
        if op == "<=":
            return left <= right
        if op == ">":
            return left > right
        return left >= right
    except TypeError:
        raise ExpressionError(
            f"Cannot compare {type(left).__name__} {op} {type(right).__name__}"
        )


def evaluate(expression: str, scope: Optional[Mapping[str, Any]] = None) -> Any:
    """Evaluate an expression and return its raw value"""
    return _Parser(expression, scope or {}).parse()


def evaluate_condition(expression: str, scope: Optional[Mapping[str, Any]] = None) -> bool:
    """Evaluate an expression to a boolean. Raises ExpressionError when it cannot be evaluated."""
    return bool(evaluate(expression, scope))


def slugify_label(label: str) -> str:
    """Turn a node label into an identifier usable in expressions ("Classifier Agent" -> "classifier_agent")"""
    slug = re.sub(r"[^0-9a-zA-Z]+", "_", label.strip().lower()).strip("_")
    if slug and slug[0].isdigit():
        slug = f"_{slug}"
    return slug


def build_scope(
    run_input: str,
    variables: Dict[str, Any],
    last_output: Any = None,
    labels: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Name bindings visible to condition expressions.

    ``input`` is the run input, ``output`` the most recent node output and
    ``variables`` the full node-id map. Node outputs are also bound by node id
    (when it is a valid identifier) and by the slug of the node's label.
    """
    scope: Dict[str, Any] = {}
    for node_id, value in variables.items():
        if node_id.isidentifier():
            scope[node_id] = value
        label = (labels or {}).get(node_id)
        if label:
            slug = slugify_label(label)
            if slug:
                scope[slug] = value
    scope["input"] = run_input
    scope["output"] = last_output
    scope["variables"] = dict(variables)
    return scope
