"""
Expression model for noq.

Expressions are immutable trees with three variants:

    Symbol(name)               - an atomic constant: a, pair, 0, 2x
    Variable(name)             - a pattern placeholder: A, Xs, _
    Application(functor, args) - f(a, b), and binary operators: a + b is
                                 Application(Symbol("+"), (a, b))

Trees are never mutated. Rewriting builds new trees that share untouched
subtrees with the original, so snapshots are safe to keep for undo.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .lexer import KEYWORDS

# Binary operators: symbol -> (precedence, right associative)
OPERATORS: Dict[str, Tuple[int, bool]] = {
    "+": (0, False),
    "-": (0, False),
    "*": (1, False),
    "/": (1, False),
    "^": (2, True),
}

MAX_PRECEDENCE = 2

WILDCARD = "_"

SYMBOL_NAME = re.compile(r"[a-z0-9][_a-zA-Z0-9]*")
VARIABLE_NAME = re.compile(r"[_A-Z][_a-zA-Z0-9]*")

# Strategy keywords double as plain symbols inside expressions
RESERVED_NAMES = frozenset(KEYWORDS) - {"all", "deep"}

# A path addresses a subterm: 0 is the functor, i + 1 is argument i
Path = Tuple[int, ...]


@dataclass(frozen=True)
class Symbol:
    """An atomic constant, or an operator when used as a functor."""

    name: str

    def __post_init__(self):
        if self.name in OPERATORS:
            return
        if not SYMBOL_NAME.fullmatch(self.name) or self.name in RESERVED_NAMES:
            raise ValueError(f"{self.name!r} is not a valid symbol name")

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Variable:
    name: str

    def __post_init__(self):
        if not VARIABLE_NAME.fullmatch(self.name):
            raise ValueError(f"{self.name!r} is not a valid variable name")

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Application:
    functor: 'Expression'
    args: Tuple['Expression', ...]

    def __post_init__(self):
        if not isinstance(self.args, tuple):
            object.__setattr__(self, 'args', tuple(self.args))
        if not self.args:
            raise ValueError("an application needs at least one argument")

    @property
    def operator(self) -> Optional[str]:
        """The operator symbol if this is a binary operator application."""
        if (isinstance(self.functor, Symbol) and self.functor.name in OPERATORS
                and len(self.args) == 2):
            return self.functor.name
        return None

    def __str__(self) -> str:
        return format_expr(self)


Expression = Union[Symbol, Variable, Application]


def binary(op: str, lhs: Expression, rhs: Expression) -> Application:
    """Build a binary operator application: binary("+", a, b) is a + b."""
    if op not in OPERATORS:
        raise ValueError(f"unknown operator {op!r}")
    return Application(Symbol(op), (lhs, rhs))


def name_to_expr(name: str) -> Union[Symbol, Variable]:
    """Names starting with an uppercase letter or _ are variables, the rest symbols."""
    if not name:
        raise ValueError("empty names are not allowed")
    first = name[0]
    if first.isupper() or first == "_":
        return Variable(name)
    return Symbol(name)


def human_name(expr: Expression) -> str:
    if isinstance(expr, Symbol):
        return "a symbol"
    if isinstance(expr, Variable):
        return "a variable"
    if expr.operator is not None:
        return "a binary operator"
    return "a functor"


# ============================================================
# Formatting
# ============================================================

def _precedence(expr: Expression) -> Optional[int]:
    if isinstance(expr, Application) and expr.operator is not None:
        return OPERATORS[expr.operator][0]
    return None


def _operand(expr: Expression, parent_precedence: int, tighter_only: bool) -> list:
    precedence = _precedence(expr)
    if precedence is not None and (
            precedence < parent_precedence or (tighter_only and precedence == parent_precedence)):
        return ["(", expr, ")"]
    return [expr]


def format_expr(expr: Expression) -> str:
    """
    Render an expression in noq surface syntax.

    Parentheses are only added where precedence or associativity needs them,
    and parsing the result gives back an equal expression.

    Examples:
        f(a, g(B))   -> "f(a, g(B))"
        a + b*c      -> "a + b*c"
        (a + b)*c    -> "(a + b)*c"
        a - (b - c)  -> "a - (b - c)"

    The tree is rendered with an explicit stack of pending pieces (text or
    subexpressions), so arbitrarily deep trees format fine.
    """
    out: List[str] = []
    stack: list = [expr]
    while stack:
        item = stack.pop()
        if isinstance(item, str):
            out.append(item)
            continue
        if isinstance(item, (Symbol, Variable)):
            out.append(item.name)
            continue

        op = item.operator
        if op is not None:
            precedence, right_assoc = OPERATORS[op]
            lhs, rhs = item.args
            separator = f" {op} " if precedence == 0 else op
            pieces = (_operand(lhs, precedence, tighter_only=right_assoc) + [separator]
                      + _operand(rhs, precedence, tighter_only=not right_assoc))
        else:
            functor = item.functor
            if isinstance(functor, Application) and functor.operator is not None:
                pieces = ["(", functor, ")("]
            else:
                pieces = [functor, "("]
            for index, arg in enumerate(item.args):
                if index:
                    pieces.append(", ")
                pieces.append(arg)
            pieces.append(")")
        stack.extend(reversed(pieces))
    return "".join(out)


# ============================================================
# Traversal
# ============================================================

def children(expr: Expression) -> List[Tuple[int, Expression]]:
    """
    Candidate child subterms of an expression, with their path steps.

    The functor comes first (step 0) unless it is an operator symbol, then
    the arguments left to right (steps 1..n).
    """
    if not isinstance(expr, Application):
        return []
    result = []
    if expr.operator is None:
        result.append((0, expr.functor))
    for index, arg in enumerate(expr.args, 1):
        result.append((index, arg))
    return result


# A link is the path of a subterm as a chain (step, parent link), () at the root
Link = tuple


def walk_links(expr: Expression) -> Iterator[Tuple[Link, Expression]]:
    """Yield (link, subterm) pairs in pre-order: a node, then its children."""
    stack = [((), expr)]
    while stack:
        link, expr = stack.pop()
        yield link, expr
        stack.extend(((step, link), child) for step, child in reversed(children(expr)))


def link_path(link: Link) -> Path:
    steps = []
    while link:
        step, link = link
        steps.append(step)
    return tuple(reversed(steps))


def walk(expr: Expression, path: Path = ()) -> Iterator[Tuple[Path, Expression]]:
    """Yield (path, subterm) pairs in pre-order: a node, then its children."""
    for link, subterm in walk_links(expr):
        yield path + link_path(link), subterm


def replace_at(expr: Expression, path: Path, replacement: Expression) -> Expression:
    """Return a new tree with the subterm at path replaced.

    Only the nodes along the path are rebuilt; every other subtree is shared
    with the original.
    """
    spine: List[Application] = []
    node = expr
    for step in path:
        if not isinstance(node, Application):
            raise IndexError(f"path {path} leaves the expression")
        spine.append(node)
        node = node.functor if step == 0 else node.args[step - 1]

    result = replacement
    for parent, step in zip(reversed(spine), reversed(path)):
        if step == 0:
            result = Application(result, parent.args)
        else:
            args = list(parent.args)
            args[step - 1] = result
            result = Application(parent.functor, tuple(args))
    return result


def variables(expr: Expression) -> List[str]:
    """Names of the variables in an expression, in order of first occurrence."""
    seen: List[str] = []
    for _, subterm in walk_links(expr):
        if isinstance(subterm, Variable) and subterm.name not in seen:
            seen.append(subterm.name)
    return seen
