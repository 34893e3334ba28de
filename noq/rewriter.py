"""
Core rewriter module for noq.

This module provides pattern matching, substitution and the rule
application strategies used to rewrite expressions.

Matching is first-order and one-directional: only the pattern contains
variables. A variable that occurs more than once in a pattern must match
structurally equal subterms each time. The variable _ matches anything and
binds nothing.

Strategies:
    FIRST    - rewrite the first match in pre-order (the default)
    ALL      - rewrite every outermost match, each with its own bindings
    DEEP     - repeat FIRST until nothing matches
    nth(N)   - rewrite the N-th match (0-indexed) in pre-order
"""

from dataclasses import dataclass, field
from enum import Enum
from itertools import islice
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from .errors import (
    DeepApplyLimitExceeded, IrreversibleRule, Loc, NoMatchAtIndex, NoMatchFound,
    StrategyIsNotSymbol, UnboundBodyVariable, UnknownStrategy,
)
from .expr import (
    WILDCARD, Application, Expression, Path, Symbol, Variable,
    children, human_name, link_path, replace_at, variables, walk_links,
)

# Rewrites a single `apply deep` may perform before giving up
DEFAULT_DEEP_LIMIT = 1000


# ============================================================
# Rules
# ============================================================

@dataclass(frozen=True)
class Rule:
    """
    A rewrite rule: head pattern => body pattern.

    Every variable in the body must occur in the head. Rules without a name
    are anonymous and live for a single apply.

    Rules compare by name, head and body; the source location is only kept
    for error messages.
    """

    name: Optional[str]
    head: Expression
    body: Expression
    loc: Optional[Loc] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        bound = set(variables(self.head))
        for name in variables(self.body):
            if name == WILDCARD or name not in bound:
                raise UnboundBodyVariable(name, self.loc)

    @property
    def anonymous(self) -> bool:
        return self.name is None

    @property
    def reversible(self) -> bool:
        return True

    def reversed(self) -> 'Rule':
        """The same rule read right to left."""
        return Rule(self.name, self.body, self.head, self.loc)

    def instantiate(self, bindings: 'Bindings', deep_limit: int = DEFAULT_DEEP_LIMIT,
                    loc: Optional[Loc] = None) -> Expression:
        """The replacement for a match of the head."""
        return substitute(self.body, bindings)

    def __str__(self) -> str:
        if self.name is None:
            return f"rule {self.head} = {self.body}"
        return f"rule {self.name} {self.head} = {self.body}"


# ============================================================
# Bindings Class - Dict-like interface for match results
# ============================================================

class Bindings:
    """
    Dict-like mapping from variable names to the expressions they matched.

        if bindings := pattern_match(head, expr):
            print(bindings["A"], bindings.get("B"))

    Bindings objects are truthy even when empty (a pattern without variables
    can match). Use NoMatch (which is falsy) to represent failed matches.
    """

    __slots__ = ('_dict',)

    def __init__(self, mapping: Optional[Dict[str, Expression]] = None):
        self._dict: Dict[str, Expression] = dict(mapping or {})

    def __bool__(self) -> bool:
        return True

    def bind(self, name: str, value: Expression) -> bool:
        """
        Bind a variable, or check an existing binding.

        Returns False if the name is already bound to a different expression.
        """
        if name == WILDCARD:
            return True
        existing = self._dict.get(name)
        if existing is None:
            self._dict[name] = value
            return True
        return existing == value

    def __getitem__(self, key: str) -> Expression:
        return self._dict[key]

    def get(self, key: str, default=None):
        return self._dict.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self._dict

    def keys(self):
        return self._dict.keys()

    def values(self):
        return self._dict.values()

    def items(self):
        return self._dict.items()

    def __iter__(self):
        return iter(self._dict)

    def __len__(self) -> int:
        return len(self._dict)

    def __repr__(self) -> str:
        inner = ", ".join(f"{name}: {value}" for name, value in self._dict.items())
        return f"Bindings({{{inner}}})"

    def __eq__(self, other):
        if isinstance(other, Bindings):
            return self._dict == other._dict
        return False

    def copy(self) -> 'Bindings':
        return Bindings(self._dict)

    def to_dict(self) -> Dict[str, Expression]:
        """Convert to a plain dictionary."""
        return self._dict.copy()


class _NoMatch:
    """
    Singleton representing a failed pattern match.

    NoMatch is falsy, allowing natural use in conditionals:

        if bindings := pattern_match(head, expr):
            # matched
        else:
            # NoMatch
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NoMatch"

    def __getitem__(self, key: str):
        raise KeyError(f"NoMatch has no binding for '{key}'")

    def get(self, key: str, default=None):
        return default

    def __contains__(self, key: str) -> bool:
        return False

    def __len__(self) -> int:
        return 0

    def __iter__(self):
        return iter([])


NoMatch = _NoMatch()


# ============================================================
# Pattern Matching
# ============================================================

def match(pattern: Expression, subject: Expression, bindings: Bindings) -> bool:
    """
    Match a pattern against a subject, extending bindings in place.

    Cases on the pattern:
        Variable    - bind it, or require equality with its existing binding
        Symbol      - the subject must be the same symbol
        Application - the subject must be an application whose functor
                      matches, with the same arity and pairwise matching
                      arguments (left to right, stopping at the first failure)

    Args:
        pattern: The pattern, which may contain variables
        subject: The expression to match against
        bindings: Bindings to extend; may be partially filled on failure

    Returns:
        True if the subject matches
    """
    if isinstance(pattern, Variable):
        return bindings.bind(pattern.name, subject)

    if isinstance(pattern, Symbol):
        return isinstance(subject, Symbol) and subject.name == pattern.name

    if not isinstance(subject, Application) or len(pattern.args) != len(subject.args):
        return False
    if not match(pattern.functor, subject.functor, bindings):
        return False
    for pattern_arg, subject_arg in zip(pattern.args, subject.args):
        if not match(pattern_arg, subject_arg, bindings):
            return False
    return True


def pattern_match(pattern: Expression, subject: Expression) -> Union[Bindings, _NoMatch]:
    """Match with fresh bindings. Returns Bindings, or NoMatch on failure."""
    bindings = Bindings()
    if match(pattern, subject, bindings):
        return bindings
    return NoMatch


# ============================================================
# Substitution
# ============================================================

def substitute(body: Expression, bindings: Any) -> Expression:
    """
    Replace every variable in body with its bound expression.

    Rules are checked for unbound body variables when they are created, so
    a missing binding here is a bug in the caller, reported as LookupError.
    """
    if isinstance(body, Variable):
        value = bindings.get(body.name)
        if value is None:
            raise LookupError(f"variable {body.name} has no binding")
        return value
    if isinstance(body, Symbol):
        return body
    return Application(
        substitute(body.functor, bindings),
        tuple(substitute(arg, bindings) for arg in body.args),
    )


# ============================================================
# Strategies
# ============================================================

class StrategyKind(Enum):
    FIRST = "first"
    ALL = "all"
    DEEP = "deep"
    NTH = "nth"


@dataclass(frozen=True)
class Strategy:
    """Which matching occurrence(s) an apply rewrites."""

    kind: StrategyKind
    index: int = 0

    def __post_init__(self):
        if self.index < 0:
            raise ValueError("occurrence index must be non-negative")

    @classmethod
    def by_name(cls, name: str) -> Optional['Strategy']:
        """Strategy for 'first', 'all', 'deep' or a decimal index, else None."""
        if name == "first":
            return FIRST
        if name == "all":
            return ALL
        if name == "deep":
            return DEEP
        if name.isdigit():
            return nth(int(name))
        return None

    def __str__(self) -> str:
        if self.kind is StrategyKind.NTH:
            return str(self.index)
        return self.kind.value


FIRST = Strategy(StrategyKind.FIRST)
ALL = Strategy(StrategyKind.ALL)
DEEP = Strategy(StrategyKind.DEEP)


def nth(index: int) -> Strategy:
    return Strategy(StrategyKind.NTH, index)


# ============================================================
# Rule Application
# ============================================================

def occurrences(target: Expression, head: Expression) -> Iterator[Tuple[Path, Bindings]]:
    """
    Yield (path, bindings) for every subterm of target that head matches.

    Subterms are visited in pre-order, and each match gets its own bindings.
    Matches nested inside other matches are included.
    """
    for link, subterm in walk_links(target):
        bindings = pattern_match(head, subterm)
        if bindings:
            yield link_path(link), bindings


def outermost_occurrences(target: Expression, head: Expression) -> List[Tuple[Path, Bindings]]:
    """Matches in pre-order, skipping everything below a matched subterm."""
    found = []
    stack = [((), target)]
    while stack:
        link, subterm = stack.pop()
        bindings = pattern_match(head, subterm)
        if bindings:
            found.append((link_path(link), bindings))
            continue
        stack.extend(((step, link), child) for step, child in reversed(children(subterm)))
    return found


def _rewrite_first(target: Expression, rule: 'AnyRule', deep_limit: int,
                   loc: Optional[Loc]) -> Optional[Expression]:
    for path, bindings in occurrences(target, rule.head):
        return replace_at(target, path, rule.instantiate(bindings, deep_limit, loc))
    return None


def _rewrite_all(target: Expression, rule: 'AnyRule', deep_limit: int,
                 loc: Optional[Loc]) -> Tuple[Expression, int]:
    found = outermost_occurrences(target, rule.head)
    result = target
    # outermost matches never nest, so rewriting one leaves the others' paths valid
    for path, bindings in found:
        result = replace_at(result, path, rule.instantiate(bindings, deep_limit, loc))
    return result, len(found)


def apply_rule(
    target: Expression,
    rule: 'AnyRule',
    strategy: Strategy = FIRST,
    deep_limit: int = DEFAULT_DEEP_LIMIT,
    loc: Optional[Loc] = None,
) -> Tuple[Expression, int]:
    """
    Rewrite target with a rule under a strategy.

    This is a pure function: the target is never modified.

    Args:
        target: Expression to rewrite
        rule: The rule to apply, a Rule or the built-in REPLACE
        strategy: FIRST (default), ALL, DEEP or nth(N)
        deep_limit: Maximum number of rewrites for DEEP
        loc: Location reported in errors

    Returns:
        (new expression, number of occurrences rewritten)

    Raises:
        NoMatchFound: Nothing matched (FIRST, ALL, DEEP)
        NoMatchAtIndex: Fewer than N + 1 matches (nth)
        DeepApplyLimitExceeded: DEEP still matched after deep_limit rewrites
    """
    kind = strategy.kind

    if kind is StrategyKind.FIRST:
        result = _rewrite_first(target, rule, deep_limit, loc)
        if result is None:
            raise NoMatchFound(rule.head, loc)
        return result, 1

    if kind is StrategyKind.ALL:
        result, count = _rewrite_all(target, rule, deep_limit, loc)
        if count == 0:
            raise NoMatchFound(rule.head, loc)
        return result, count

    if kind is StrategyKind.DEEP:
        current = target
        count = 0
        while True:
            result = _rewrite_first(current, rule, deep_limit, loc)
            if result is None:
                break
            if count >= deep_limit:
                raise DeepApplyLimitExceeded(deep_limit, loc)
            current = result
            count += 1
        if count == 0:
            raise NoMatchFound(rule.head, loc)
        return current, count

    found = list(islice(occurrences(target, rule.head), strategy.index + 1))
    if len(found) <= strategy.index:
        raise NoMatchAtIndex(rule.head, strategy.index, len(found), loc)
    path, bindings = found[strategy.index]
    return replace_at(target, path, rule.instantiate(bindings, deep_limit, loc)), 1


# ============================================================
# Built-in Rules
# ============================================================

class ReplaceRule:
    """
    The built-in `replace` rule.

    It matches apply_rule(Strategy, Head, Body, Expr) and rewrites it to the
    result of applying the rule Head = Body to Expr under Strategy. The
    strategy must be a symbol: first, all, deep or an occurrence index.

        shape apply_rule(all, f(X), g(X), pair(f(a), f(b)))
            apply replace
        done
        # => pair(g(a), g(b))

    Errors from the inner application (no match, unbound body variables)
    propagate unchanged. The rule cannot be reversed.
    """

    name = "replace"
    head = Application(Symbol("apply_rule"), (
        Variable("Strategy"), Variable("Head"), Variable("Body"), Variable("Expr"),
    ))
    loc = None
    anonymous = False
    reversible = False

    def reversed(self):
        raise IrreversibleRule(self.name)

    def instantiate(self, bindings: Bindings, deep_limit: int = DEFAULT_DEEP_LIMIT,
                    loc: Optional[Loc] = None) -> Expression:
        strategy_expr = bindings["Strategy"]
        if not isinstance(strategy_expr, Symbol):
            raise StrategyIsNotSymbol(strategy_expr, human_name(strategy_expr), loc)
        strategy = Strategy.by_name(strategy_expr.name)
        if strategy is None:
            raise UnknownStrategy(strategy_expr.name, loc)
        inner = Rule(None, bindings["Head"], bindings["Body"], loc)
        result, _ = apply_rule(bindings["Expr"], inner, strategy, deep_limit, loc)
        return result

    def __str__(self) -> str:
        return f"rule {self.name} {self.head} = <built-in>"

    def __repr__(self) -> str:
        return "REPLACE"


REPLACE = ReplaceRule()

BUILTIN_RULES = {REPLACE.name: REPLACE}

AnyRule = Union[Rule, ReplaceRule]
