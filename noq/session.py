"""
Shaping sessions.

A session holds the expression being shaped and the snapshots needed to
undo. It is a small state machine:

    ACTIVE --apply/undo--> ACTIVE
    ACTIVE --done--------> DONE   (result is the current expression)
    ACTIVE --quit--------> QUIT   (discarded)

A failed apply or undo raises and leaves the session exactly as it was.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional

from .errors import EmptyHistory, Loc, SessionClosed
from .expr import Expression, format_expr
from .rewriter import DEFAULT_DEEP_LIMIT, FIRST, AnyRule, Strategy, apply_rule

logger = logging.getLogger(__name__)


class SessionState(Enum):
    ACTIVE = "active"
    DONE = "done"
    QUIT = "quit"


class RewriteStep:
    """A single applied rewrite in a shaping session."""

    def __init__(self, rule: AnyRule, strategy: Strategy,
                 before: Expression, after: Expression, count: int):
        self.rule = rule
        self.strategy = strategy
        self.before = before
        self.after = after
        self.count = count

    @property
    def label(self) -> str:
        name = self.rule.name or "<anonymous>"
        if self.strategy == FIRST:
            return name
        return f"{self.strategy} {name}"

    def __repr__(self) -> str:
        return f"{self.label}: {format_expr(self.before)} → {format_expr(self.after)}"

    def to_dict(self) -> Dict:
        return {
            "rule_name": self.rule.name,
            "strategy": str(self.strategy),
            "before": format_expr(self.before),
            "after": format_expr(self.after),
            "count": self.count,
        }


class ShapingSession:
    """
    Stateful controller for shaping one expression.

    Example:
        session = ShapingSession(E("swap(pair(a, b))"))
        session.apply(swap_rule)
        session.undo()
        result = session.done()
    """

    def __init__(self, expr: Expression, deep_limit: int = DEFAULT_DEEP_LIMIT):
        self.initial = expr
        self.current = expr
        self.history: List[Expression] = []
        self.steps: List[RewriteStep] = []
        self.state = SessionState.ACTIVE
        self.deep_limit = deep_limit

    @property
    def active(self) -> bool:
        return self.state is SessionState.ACTIVE

    def _check_active(self, loc: Optional[Loc]) -> None:
        if not self.active:
            raise SessionClosed(self.state.value, loc)

    def apply(self, rule: AnyRule, strategy: Strategy = FIRST,
              loc: Optional[Loc] = None) -> RewriteStep:
        """
        Rewrite the current expression.

        On success the previous expression is pushed on the history. On any
        error (NoMatchFound, NoMatchAtIndex, DeepApplyLimitExceeded) nothing
        changes.

        Returns:
            The RewriteStep that was recorded
        """
        self._check_active(loc)
        before = self.current
        after, count = apply_rule(before, rule, strategy, self.deep_limit, loc)
        step = RewriteStep(rule, strategy, before, after, count)
        self.history.append(before)
        self.steps.append(step)
        self.current = after
        logger.debug("applied %s (%d occurrence(s)): %s", step.label, count, format_expr(after))
        return step

    def undo(self, loc: Optional[Loc] = None) -> Expression:
        """Restore the expression from before the last apply."""
        self._check_active(loc)
        if not self.history:
            raise EmptyHistory(loc)
        self.current = self.history.pop()
        self.steps.pop()
        logger.debug("undo: %s", format_expr(self.current))
        return self.current

    def done(self, loc: Optional[Loc] = None) -> Expression:
        """Finish shaping and return the result."""
        self._check_active(loc)
        self.state = SessionState.DONE
        return self.current

    def quit(self, loc: Optional[Loc] = None) -> None:
        """Abandon the session without a result."""
        self._check_active(loc)
        self.state = SessionState.QUIT

    def trace(self) -> str:
        """The shaping so far as a chain of expressions and rule labels."""
        parts = [format_expr(self.initial)]
        for step in self.steps:
            parts.append(f"  --({step.label})-->")
            parts.append(format_expr(step.after))
        return "\n".join(parts)

    def __repr__(self) -> str:
        return f"ShapingSession({self.state.value}, {format_expr(self.current)})"
