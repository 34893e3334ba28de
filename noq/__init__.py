"""
noq - Not Quite a proof assistant

Shape symbolic expressions step by step with user-defined rewrite rules.

Quick Start:
    from noq import Interpreter

    interp = Interpreter()
    interp.run_source('''
        rule swap swap(pair(A, B)) = pair(B, A)

        shape swap(pair(f(a), g(b)))
            apply swap
        done
    ''')

    interp.results[-1]  # => pair(g(b), f(a))

Syntax:
    # Comments start with #
    rule NAME HEAD = BODY       define a named rule
    NAME :: HEAD = BODY         the same, shorter
    shape EXPR                  start shaping an expression
    apply [all|deep|N] NAME     rewrite the first / every / repeatedly / N-th match
    apply rule HEAD = BODY      rewrite with a one-off anonymous rule
    apply reverse NAME          rewrite with a rule read right to left
    undo                        step back
    done                        finish shaping

Expression Syntax:
    a, pair, 0        - symbols (lowercase or digit first)
    A, Xs, _          - variables (uppercase or _ first); _ matches anything
    f(a, B)           - application
    a + b*c ^ d       - binary operators + - * / ^ with the usual precedence
"""

__version__ = "0.1.0"

# Errors
from .errors import (
    Loc,
    NoqError,
    LexError,
    ParseError,
    UnboundBodyVariable,
    DuplicateRule,
    RuleNotFound,
    StorageError,
    NoMatchFound,
    NoMatchAtIndex,
    DeepApplyLimitExceeded,
    UnknownStrategy,
    StrategyIsNotSymbol,
    IrreversibleRule,
    EmptyHistory,
    NoShapingInPlace,
    AlreadyShaping,
    SessionClosed,
)

# Expressions
from .expr import (
    Symbol,
    Variable,
    Application,
    Expression,
    binary,
    format_expr,
    walk,
)

# Core rewriter components
from .rewriter import (
    Rule,
    ReplaceRule,
    REPLACE,
    Bindings,
    NoMatch,
    Strategy,
    FIRST,
    ALL,
    DEEP,
    DEFAULT_DEEP_LIMIT,
    nth,
    match,
    pattern_match,
    substitute,
    apply_rule,
)

# Syntax
from .lexer import Lexer, Token, TokenKind
from .parser import E, Parser, parse_expr, parse_statement, parse_program, parse_rules

# Rule table, shaping and the interpreter
from .engine import RuleTable, load_rules_from_source, load_rules_from_file
from .session import ShapingSession, RewriteStep, SessionState
from .interpreter import Interpreter

# Public API
__all__ = [
    # Version
    "__version__",
    # Errors
    "Loc",
    "NoqError",
    "LexError",
    "ParseError",
    "UnboundBodyVariable",
    "DuplicateRule",
    "RuleNotFound",
    "StorageError",
    "NoMatchFound",
    "NoMatchAtIndex",
    "DeepApplyLimitExceeded",
    "UnknownStrategy",
    "StrategyIsNotSymbol",
    "IrreversibleRule",
    "EmptyHistory",
    "NoShapingInPlace",
    "AlreadyShaping",
    "SessionClosed",
    # Expressions
    "Symbol",
    "Variable",
    "Application",
    "Expression",
    "binary",
    "format_expr",
    "walk",
    # Core
    "Rule",
    "ReplaceRule",
    "REPLACE",
    "Bindings",
    "NoMatch",
    "Strategy",
    "FIRST",
    "ALL",
    "DEEP",
    "DEFAULT_DEEP_LIMIT",
    "nth",
    "match",
    "pattern_match",
    "substitute",
    "apply_rule",
    # Syntax
    "Lexer",
    "Token",
    "TokenKind",
    "E",
    "Parser",
    "parse_expr",
    "parse_statement",
    "parse_program",
    "parse_rules",
    # Engine
    "RuleTable",
    "load_rules_from_source",
    "load_rules_from_file",
    "ShapingSession",
    "RewriteStep",
    "SessionState",
    "Interpreter",
]
