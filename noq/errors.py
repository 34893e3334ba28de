"""
Error taxonomy for noq.

Every error raised for user input derives from NoqError and may carry the
source location of the offending token or statement.
"""

from typing import Optional


class Loc:
    """A position in noq source text (1-indexed row and column)."""

    __slots__ = ('file_path', 'row', 'col')

    def __init__(self, file_path: Optional[str], row: int, col: int):
        self.file_path = file_path
        self.row = row
        self.col = col

    def __eq__(self, other):
        if isinstance(other, Loc):
            return (self.file_path, self.row, self.col) == (other.file_path, other.row, other.col)
        return False

    def __hash__(self):
        return hash((self.file_path, self.row, self.col))

    def __repr__(self) -> str:
        return f"Loc({self.file_path!r}, {self.row}, {self.col})"

    def __str__(self) -> str:
        if self.file_path:
            return f"{self.file_path}:{self.row}:{self.col}"
        return f"{self.row}:{self.col}"


class NoqError(Exception):
    """Base class for all noq errors."""

    def __init__(self, message: str, loc: Optional[Loc] = None):
        self.message = message
        self.loc = loc
        super().__init__(message)

    def __str__(self) -> str:
        if self.loc is not None:
            return f"{self.loc}: {self.message}"
        return self.message


# ============================================================
# Parsing
# ============================================================

class LexError(NoqError):
    """A character that starts no token."""

    def __init__(self, char: str, loc: Loc):
        self.char = char
        super().__init__(f"unexpected character {char!r}", loc)


class ParseError(NoqError):
    """Grammar violation: the parser expected one thing and found another."""

    def __init__(self, expected: str, found: str, loc: Loc):
        self.expected = expected
        self.found = found
        super().__init__(f"expected {expected} but got {found}", loc)


class UnboundBodyVariable(NoqError):
    """A rule body uses a variable its head never binds."""

    def __init__(self, variable: str, loc: Optional[Loc] = None):
        self.variable = variable
        super().__init__(f"variable {variable} in the rule body does not occur in its head", loc)


# ============================================================
# Rule table
# ============================================================

class DuplicateRule(NoqError):
    def __init__(self, name: str, loc: Optional[Loc] = None, previous: Optional[Loc] = None):
        self.name = name
        self.previous = previous
        super().__init__(f"redefinition of existing rule {name}", loc)


class RuleNotFound(NoqError):
    def __init__(self, name: str, loc: Optional[Loc] = None):
        self.name = name
        super().__init__(f"rule {name} does not exist", loc)


class StorageError(NoqError):
    """Reading or writing a rule file failed."""

    def __init__(self, path: str, cause: OSError, loc: Optional[Loc] = None):
        self.path = path
        self.cause = cause
        reason = cause.strerror or str(cause)
        super().__init__(f"could not access {path}: {reason}", loc)


# ============================================================
# Rule application
# ============================================================

class NoMatchFound(NoqError):
    def __init__(self, head, loc: Optional[Loc] = None):
        self.head = head
        super().__init__(f"no match found for pattern {head}", loc)


class NoMatchAtIndex(NoqError):
    def __init__(self, head, index: int, found: int, loc: Optional[Loc] = None):
        self.head = head
        self.index = index
        self.found = found
        super().__init__(
            f"no match at index {index} for pattern {head} ({found} match(es) found)", loc
        )


class DeepApplyLimitExceeded(NoqError):
    def __init__(self, limit: int, loc: Optional[Loc] = None):
        self.limit = limit
        super().__init__(f"deep application did not settle after {limit} rewrites", loc)


class UnknownStrategy(NoqError):
    def __init__(self, name: str, loc: Optional[Loc] = None):
        self.name = name
        super().__init__(f"unknown rule application strategy '{name}'", loc)


class StrategyIsNotSymbol(NoqError):
    """The strategy given to the replace rule is not a plain symbol.

    kind is the human readable kind of the offending expression, like
    "a variable" or "a functor".
    """

    def __init__(self, strategy, kind: str, loc: Optional[Loc] = None):
        self.strategy = strategy
        super().__init__(f"strategy must be a symbol but got {kind} {strategy}", loc)


class IrreversibleRule(NoqError):
    def __init__(self, name: str, loc: Optional[Loc] = None):
        self.name = name
        super().__init__(f"rule {name} is irreversible", loc)


# ============================================================
# Shaping
# ============================================================

class EmptyHistory(NoqError):
    def __init__(self, loc: Optional[Loc] = None):
        super().__init__("no history", loc)


class NoShapingInPlace(NoqError):
    def __init__(self, loc: Optional[Loc] = None):
        super().__init__("no shaping in place", loc)


class AlreadyShaping(NoqError):
    def __init__(self, loc: Optional[Loc] = None):
        super().__init__(
            "already shaping an expression. Finish the current shaping with done first", loc
        )


class SessionClosed(NoqError):
    def __init__(self, state: str, loc: Optional[Loc] = None):
        self.state = state
        super().__init__(f"shaping session is already {state}", loc)
