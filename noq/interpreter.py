"""
Command interpreter for noq.

Drives a rule table and at most one shaping session from parsed statements.
Programs (whole files) are parsed completely before anything runs; the REPL
feeds flat statements one at a time through execute().
"""

import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from .engine import RuleTable
from .errors import AlreadyShaping, IrreversibleRule, Loc, NoShapingInPlace
from .expr import Expression
from .parser import (
    AppliedRule, Apply, Delete, Done, Load, Quit, RuleDefinition, Save,
    Shape, ShapeBlock, Statement, Undo, parse_program,
)
from .rewriter import DEFAULT_DEEP_LIMIT, AnyRule, Rule
from .session import ShapingSession

logger = logging.getLogger(__name__)


class Interpreter:
    """
    Executes noq statements.

    The rule table is injected so several interpreters (or tests) never share
    state by accident.

    Example:
        interp = Interpreter()
        interp.run_source('''
            rule swap swap(pair(A, B)) = pair(B, A)
            shape swap(pair(f(a), g(b)))
                apply all swap
            done
        ''')
        interp.results[-1]  # pair(g(b), f(a))
    """

    def __init__(
        self,
        rules: Optional[RuleTable] = None,
        deep_limit: int = DEFAULT_DEEP_LIMIT,
        base_path: Optional[Union[str, Path]] = None,
        echo: Optional[Callable[[Expression], None]] = None,
    ):
        """
        Args:
            rules: Rule table to use (a fresh one by default)
            deep_limit: Rewrite cap for `apply deep`
            base_path: Directory relative load/save paths resolve against
            echo: Called with every new current expression while shaping
        """
        self.rules = rules if rules is not None else RuleTable()
        self.deep_limit = deep_limit
        self.base_path = Path(base_path) if base_path is not None else None
        self.echo = echo
        self.session: Optional[ShapingSession] = None
        self.results: List[Expression] = []
        self.stopped = False

    @property
    def shaping(self) -> bool:
        return self.session is not None

    def _show(self, expr: Expression) -> None:
        if self.echo is not None:
            self.echo(expr)

    def _require_session(self, loc: Loc) -> ShapingSession:
        if self.session is None:
            raise NoShapingInPlace(loc)
        return self.session

    def resolve_path(self, path: str) -> Path:
        resolved = Path(path)
        if self.base_path is not None and not resolved.is_absolute():
            resolved = self.base_path / resolved
        return resolved

    def resolve_rule(self, applied: AppliedRule) -> AnyRule:
        """Turn an applied rule into a rule; named rules come from the table."""
        if isinstance(applied, Rule):
            return applied
        rule = self.rules.get(applied.name, applied.loc)
        if applied.reversed:
            if not rule.reversible:
                raise IrreversibleRule(rule.name, applied.loc)
            return rule.reversed()
        return rule

    # ============================================================
    # Statements
    # ============================================================

    def execute(self, statement: Statement) -> Optional[Expression]:
        """
        Execute one statement.

        Returns the new current expression for shape, apply and undo, the
        result for done, and None otherwise. Errors propagate as NoqError
        subclasses; a failed apply leaves the session active and unchanged.
        """
        if isinstance(statement, ShapeBlock):
            return self._run_block(statement)

        if isinstance(statement, RuleDefinition):
            self.rules.define(statement.rule, statement.loc)
            return None

        if isinstance(statement, Shape):
            if self.session is not None:
                raise AlreadyShaping(statement.loc)
            self.session = ShapingSession(statement.expr, self.deep_limit)
            logger.debug("shaping %s", statement.expr)
            self._show(statement.expr)
            return statement.expr

        if isinstance(statement, Apply):
            session = self._require_session(statement.loc)
            rule = self.resolve_rule(statement.applied)
            step = session.apply(rule, statement.strategy, statement.loc)
            self._show(step.after)
            return step.after

        if isinstance(statement, Undo):
            previous = self._require_session(statement.loc).undo(statement.loc)
            self._show(previous)
            return previous

        if isinstance(statement, Done):
            result = self._require_session(statement.loc).done(statement.loc)
            self.session = None
            self.results.append(result)
            logger.debug("shaping done: %s", result)
            return result

        if isinstance(statement, Quit):
            if self.session is not None:
                self.session.quit(statement.loc)
                self.session = None
            self.stopped = True
            return None

        if isinstance(statement, Delete):
            self.rules.delete(statement.name, statement.loc)
            return None

        if isinstance(statement, Load):
            self.rules.load_file(self.resolve_path(statement.path), statement.loc)
            return None

        if isinstance(statement, Save):
            self.rules.save_file(self.resolve_path(statement.path), statement.loc)
            return None

        raise TypeError(f"unknown statement {statement!r}")

    def _run_block(self, block: ShapeBlock) -> Optional[Expression]:
        self.execute(Shape(block.loc, block.expr))
        for statement in block.body:
            self.execute(statement)
        return self.execute(block.end)

    def run_program(self, statements: Iterable[Statement]) -> List[Expression]:
        """Execute statements until the end or a quit. Returns the shaping results."""
        for statement in statements:
            if self.stopped:
                break
            self.execute(statement)
        return self.results

    def run_source(self, source: str, file_path: Optional[str] = None) -> List[Expression]:
        """Parse the whole source, then run it. Nothing runs if parsing fails."""
        return self.run_program(parse_program(source, file_path))

    def run_file(self, path: Union[str, Path]) -> List[Expression]:
        path = Path(path)
        return self.run_source(path.read_text(encoding="utf-8"), str(path))
