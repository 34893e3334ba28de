"""
Lexer for noq source text.

Converts source text into a stream of tokens for the parser.

Token kinds:
    names       - SYMBOL (lowercase or digit first), VARIABLE (uppercase or _ first),
                  NUMBER (digits only)
    operators   - + - * / ^ = ::
    punctuation - ( ) ,
    keywords    - rule shape apply done quit undo delete load save all deep reverse
    STRING      - double-quoted text, used for file paths
    END         - end of input (always the last token)

Comments start with # and run to the end of the line.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional

from .errors import LexError, Loc


class TokenKind(Enum):
    SYMBOL = "symbol"
    VARIABLE = "variable"
    NUMBER = "number"
    STRING = "string"

    PLUS = "'+'"
    DASH = "'-'"
    ASTERISK = "'*'"
    SLASH = "'/'"
    CARET = "'^'"
    EQUALS = "'='"
    DOUBLE_COLON = "'::'"

    OPEN_PAREN = "'('"
    CLOSE_PAREN = "')'"
    COMMA = "','"

    RULE = "'rule'"
    SHAPE = "'shape'"
    APPLY = "'apply'"
    DONE = "'done'"
    QUIT = "'quit'"
    UNDO = "'undo'"
    DELETE = "'delete'"
    LOAD = "'load'"
    SAVE = "'save'"
    ALL = "'all'"
    DEEP = "'deep'"
    REVERSE = "'reverse'"

    END = "end of input"

    def __str__(self) -> str:
        return self.value

    @property
    def is_name(self) -> bool:
        return self in (TokenKind.SYMBOL, TokenKind.VARIABLE, TokenKind.NUMBER)

    @property
    def is_keyword(self) -> bool:
        return self in KEYWORDS.values()


KEYWORDS = {
    "rule": TokenKind.RULE,
    "shape": TokenKind.SHAPE,
    "apply": TokenKind.APPLY,
    "done": TokenKind.DONE,
    "quit": TokenKind.QUIT,
    "undo": TokenKind.UNDO,
    "delete": TokenKind.DELETE,
    "load": TokenKind.LOAD,
    "save": TokenKind.SAVE,
    "all": TokenKind.ALL,
    "deep": TokenKind.DEEP,
    "reverse": TokenKind.REVERSE,
}

# Longer matches first
TOKEN_PATTERNS = [
    (r"::", TokenKind.DOUBLE_COLON),
    (r"\+", TokenKind.PLUS),
    (r"-", TokenKind.DASH),
    (r"\*", TokenKind.ASTERISK),
    (r"/", TokenKind.SLASH),
    (r"\^", TokenKind.CARET),
    (r"=", TokenKind.EQUALS),
    (r"\(", TokenKind.OPEN_PAREN),
    (r"\)", TokenKind.CLOSE_PAREN),
    (r",", TokenKind.COMMA),
    (r'"[^"\n]*"', TokenKind.STRING),
    (r"[_a-zA-Z0-9]+", None),  # names, classified by _name_kind
]

_COMPILED_PATTERNS = [(re.compile(pattern), kind) for pattern, kind in TOKEN_PATTERNS]
_SKIP = re.compile(r"[ \t\r\n]+|#[^\n]*")


@dataclass(frozen=True)
class Token:
    """A single token.

    Attributes:
        kind: The token kind
        text: The source text (string tokens without their quotes)
        loc: Where the token starts
    """

    kind: TokenKind
    text: str
    loc: Loc

    def __repr__(self) -> str:
        return f"Token({self.kind.name}, {self.text!r}, {self.loc})"

    def describe(self) -> str:
        """Human readable description used in error messages."""
        if self.kind == TokenKind.END:
            return str(self.kind)
        return f"{self.kind} '{self.text}'"


def _name_kind(text: str) -> TokenKind:
    if text in KEYWORDS:
        return KEYWORDS[text]
    if text.isdigit():
        return TokenKind.NUMBER
    first = text[0]
    if first.isupper() or first == "_":
        return TokenKind.VARIABLE
    return TokenKind.SYMBOL


class Lexer:
    """
    Tokenizer for noq source.

    A Lexer is lazy and restartable: every iteration starts again from the
    beginning of the source, and tokens are produced on demand.

    Usage:
        for token in Lexer("rule swap swap(pair(A, B)) = pair(B, A)"):
            print(token)
    """

    def __init__(self, source: str, file_path: Optional[str] = None):
        self.source = source
        self.file_path = file_path

    def __iter__(self) -> Iterator[Token]:
        source = self.source
        position = 0
        row = 1
        line_start = 0

        while True:
            skipped = _SKIP.match(source, position)
            while skipped and skipped.end() > position:
                newlines = source.count("\n", position, skipped.end())
                if newlines:
                    row += newlines
                    line_start = source.rfind("\n", position, skipped.end()) + 1
                position = skipped.end()
                skipped = _SKIP.match(source, position)

            loc = Loc(self.file_path, row, position - line_start + 1)
            if position >= len(source):
                yield Token(TokenKind.END, "", loc)
                return

            for pattern, kind in _COMPILED_PATTERNS:
                found = pattern.match(source, position)
                if found:
                    text = found.group()
                    position = found.end()
                    if kind is None:
                        yield Token(_name_kind(text), text, loc)
                    elif kind == TokenKind.STRING:
                        yield Token(kind, text[1:-1], loc)
                    else:
                        yield Token(kind, text, loc)
                    break
            else:
                raise LexError(source[position], loc)

    def tokenize(self) -> List[Token]:
        """Tokenize the whole source, END token included."""
        return list(self)


class TokenStream:
    """Buffered lookahead over a Lexer, used by the parser."""

    def __init__(self, lexer: Lexer):
        self._tokens = iter(lexer)
        self._buffer: List[Token] = []

    def peek(self, offset: int = 0) -> Token:
        """The token offset places ahead, without consuming anything."""
        while len(self._buffer) <= offset:
            if self._buffer and self._buffer[-1].kind == TokenKind.END:
                return self._buffer[-1]
            self._buffer.append(next(self._tokens))
        return self._buffer[offset]

    def next(self) -> Token:
        token = self.peek()
        # END repeats forever so callers never exhaust the stream
        if token.kind != TokenKind.END:
            self._buffer.pop(0)
        return token

    def at_end(self) -> bool:
        return self.peek().kind == TokenKind.END
