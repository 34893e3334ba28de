"""
Parser for noq source.

Converts a token stream into expressions and statements. Uses recursive
descent with precedence climbing for binary operators.

Operator precedence (lowest to highest):
    1. + -   (left associative)
    2. * /   (left associative)
    3. ^     (right associative)
    4. primary: ( expr ), a name, or a name followed by argument lists

A name followed by ( always starts an application, and argument lists
chain: f(a)(b) applies f(a) to b.
The strategy keywords all and deep read as plain symbols inside expressions.
Parentheses, argument lists and ^ chains nest at most MAX_NESTING deep.

Statements:
    rule <name> <head> = <body>
    <name> :: <head> = <body>
    shape <expr>
    apply [first | all | deep | <N>] <applied-rule>
    undo
    done
    quit
    delete <name>
    load "<path>"
    save "<path>"

Applied rule:
    <name> | rule <head> = <body> | reverse <applied-rule>

Parsing never recovers: the first error aborts with ParseError.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from .errors import Loc, ParseError
from .expr import (
    MAX_PRECEDENCE, OPERATORS, Application, Expression, Symbol, binary, name_to_expr,
)
from .lexer import Lexer, Token, TokenKind, TokenStream
from .rewriter import FIRST, Rule, Strategy

MAX_NESTING = 100

# Tokens that may follow a strategy name in an apply statement
_APPLIED_RULE_START = (TokenKind.RULE, TokenKind.REVERSE)

OPERATOR_TOKENS = {
    TokenKind.PLUS: "+",
    TokenKind.DASH: "-",
    TokenKind.ASTERISK: "*",
    TokenKind.SLASH: "/",
    TokenKind.CARET: "^",
}


# -----------------------------------------------------------------------------
# Statements
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Statement:
    """Base class for statements."""
    loc: Loc = field(compare=False)


@dataclass(frozen=True)
class RuleDefinition(Statement):
    rule: Rule = None


@dataclass(frozen=True)
class Shape(Statement):
    """Start shaping an expression."""
    expr: Expression = None


@dataclass(frozen=True)
class RuleRef:
    """A rule applied by name, possibly read right to left."""
    name: str
    reversed: bool = False
    loc: Optional[Loc] = field(default=None, compare=False)

    def __str__(self) -> str:
        return f"reverse {self.name}" if self.reversed else self.name


AppliedRule = Union[RuleRef, Rule]


@dataclass(frozen=True)
class Apply(Statement):
    strategy: Strategy = FIRST
    applied: AppliedRule = None


@dataclass(frozen=True)
class Undo(Statement):
    pass


@dataclass(frozen=True)
class Done(Statement):
    pass


@dataclass(frozen=True)
class Quit(Statement):
    pass


@dataclass(frozen=True)
class Delete(Statement):
    name: str = ""


@dataclass(frozen=True)
class Load(Statement):
    path: str = ""


@dataclass(frozen=True)
class Save(Statement):
    path: str = ""


@dataclass(frozen=True)
class ShapeBlock(Statement):
    """A whole shaping: shape <expr>, its commands, and done or quit."""
    expr: Expression = None
    body: Tuple[Statement, ...] = ()
    end: Statement = None


_BLOCK_COMMANDS = (Apply, Undo, RuleDefinition, Delete, Load, Save)


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------

class Parser:
    """
    Recursive descent parser for noq.

    Usage:
        parser = Parser("shape swap(pair(a, b)) apply swap done")
        statements = parser.parse_program()
    """

    def __init__(self, source: str, file_path: Optional[str] = None):
        self.source = source
        self.file_path = file_path
        self._stream = TokenStream(Lexer(source, file_path))
        self._depth = 0

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _peek(self) -> Token:
        return self._stream.peek()

    def _advance(self) -> Token:
        return self._stream.next()

    def _consume(self, kind: TokenKind) -> Token:
        token = self._advance()
        if token.kind != kind:
            raise ParseError(str(kind), token.describe(), token.loc)
        return token

    def _consume_name(self, what: str = "rule name") -> Token:
        token = self._advance()
        if not token.kind.is_name:
            raise ParseError(what, token.describe(), token.loc)
        return token

    def _enter(self, token: Token) -> None:
        self._depth += 1
        if self._depth > MAX_NESTING:
            raise ParseError("less deeply nested expression", token.describe(), token.loc)

    def _leave(self) -> None:
        self._depth -= 1

    def expect_end(self) -> None:
        self._consume(TokenKind.END)

    def remaining(self) -> List[Token]:
        """Consume and return the tokens left before the end of input."""
        tokens = []
        while not self._stream.at_end():
            tokens.append(self._advance())
        return tokens

    # -------------------------------------------------------------------------
    # Expressions (in order of precedence, lowest to highest)
    # -------------------------------------------------------------------------

    def parse_expr(self) -> Expression:
        return self._parse_binary(0)

    def _parse_binary(self, precedence: int) -> Expression:
        if precedence > MAX_PRECEDENCE:
            return self._parse_primary()

        lhs = self._parse_binary(precedence + 1)
        while True:
            op = OPERATOR_TOKENS.get(self._peek().kind)
            if op is None:
                break
            op_precedence, right_assoc = OPERATORS[op]
            if op_precedence != precedence:
                break
            operator = self._advance()
            if right_assoc:
                self._enter(operator)
                rhs = self._parse_binary(precedence)
                self._leave()
            else:
                rhs = self._parse_binary(precedence + 1)
            lhs = binary(op, lhs, rhs)
        return lhs

    def _parse_primary(self) -> Expression:
        token = self._peek()
        if token.kind == TokenKind.OPEN_PAREN:
            self._advance()
            self._enter(token)
            expr = self.parse_expr()
            self._leave()
            self._consume(TokenKind.CLOSE_PAREN)
        elif token.kind in (TokenKind.NUMBER, TokenKind.ALL, TokenKind.DEEP):
            self._advance()
            expr = Symbol(token.text)
        elif token.kind.is_name:
            self._advance()
            expr = name_to_expr(token.text)
        else:
            raise ParseError(
                "primary expression (functor, symbol or variable)", token.describe(), token.loc
            )

        while self._peek().kind == TokenKind.OPEN_PAREN:
            expr = Application(expr, self._parse_args())
        return expr

    def _parse_args(self) -> Tuple[Expression, ...]:
        self._enter(self._consume(TokenKind.OPEN_PAREN))
        args = [self.parse_expr()]
        while self._peek().kind == TokenKind.COMMA:
            self._advance()
            args.append(self.parse_expr())
        self._leave()
        self._consume(TokenKind.CLOSE_PAREN)
        return tuple(args)

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def _parse_rule_tail(self, name: Optional[str], loc: Loc) -> Rule:
        head = self.parse_expr()
        self._consume(TokenKind.EQUALS)
        body = self.parse_expr()
        return Rule(name, head, body, loc)

    def _parse_applied_rule(self) -> AppliedRule:
        reverse = False
        token = self._advance()
        while token.kind == TokenKind.REVERSE:
            reverse = not reverse
            token = self._advance()

        if token.kind == TokenKind.RULE:
            head = self.parse_expr()
            self._consume(TokenKind.EQUALS)
            body = self.parse_expr()
            if reverse:
                head, body = body, head
            return Rule(None, head, body, token.loc)
        if token.kind.is_name:
            return RuleRef(token.text, reverse, token.loc)
        raise ParseError("applied rule (name, 'rule' or 'reverse')", token.describe(), token.loc)

    def _starts_applied_rule(self, token: Token) -> bool:
        return token.kind.is_name or token.kind in _APPLIED_RULE_START

    def _parse_apply(self, keyword: Token) -> Apply:
        token = self._peek()
        strategy = FIRST
        # `first` is an ordinary symbol, so `apply first` alone names a rule
        if token.kind in (TokenKind.ALL, TokenKind.DEEP, TokenKind.NUMBER) or (
                token.kind == TokenKind.SYMBOL and token.text == "first"
                and self._starts_applied_rule(self._stream.peek(1))):
            self._advance()
            strategy = Strategy.by_name(token.text)
        return Apply(keyword.loc, strategy, self._parse_applied_rule())

    def parse_statement(self) -> Statement:
        """Parse one flat statement (shape blocks are not grouped)."""
        keyword = self._advance()
        kind = keyword.kind

        if kind == TokenKind.RULE:
            name = self._consume_name()
            return RuleDefinition(keyword.loc, self._parse_rule_tail(name.text, keyword.loc))
        if kind.is_name and self._peek().kind == TokenKind.DOUBLE_COLON:
            self._advance()
            return RuleDefinition(keyword.loc, self._parse_rule_tail(keyword.text, keyword.loc))
        if kind == TokenKind.SHAPE:
            return Shape(keyword.loc, self.parse_expr())
        if kind == TokenKind.APPLY:
            return self._parse_apply(keyword)
        if kind == TokenKind.UNDO:
            return Undo(keyword.loc)
        if kind == TokenKind.DONE:
            return Done(keyword.loc)
        if kind == TokenKind.QUIT:
            return Quit(keyword.loc)
        if kind == TokenKind.DELETE:
            return Delete(keyword.loc, self._consume_name().text)
        if kind == TokenKind.LOAD:
            return Load(keyword.loc, self._consume(TokenKind.STRING).text)
        if kind == TokenKind.SAVE:
            return Save(keyword.loc, self._consume(TokenKind.STRING).text)
        raise ParseError("command", keyword.describe(), keyword.loc)

    def _parse_shape_block(self, start: Shape) -> ShapeBlock:
        body: List[Statement] = []
        while True:
            token = self._peek()
            if token.kind == TokenKind.END:
                raise ParseError("'done' or 'quit'", token.describe(), token.loc)
            statement = self.parse_statement()
            if isinstance(statement, (Done, Quit)):
                return ShapeBlock(start.loc, start.expr, tuple(body), statement)
            if not isinstance(statement, _BLOCK_COMMANDS):
                raise ParseError("shaping command or 'done'", token.describe(), token.loc)
            body.append(statement)

    def parse_program(self) -> List[Statement]:
        """
        Parse a whole source file.

        Shapes are grouped into ShapeBlocks. Outside a shape only rule
        definitions, delete, load, save and quit are allowed.
        """
        statements: List[Statement] = []
        while not self._stream.at_end():
            token = self._peek()
            statement = self.parse_statement()
            if isinstance(statement, Shape):
                statement = self._parse_shape_block(statement)
            elif isinstance(statement, (Apply, Undo, Done)):
                raise ParseError("'rule', 'shape' or a table command", token.describe(), token.loc)
            statements.append(statement)
        return statements

    def parse_rules(self) -> List[Rule]:
        """Parse a rule file: nothing but rule definitions."""
        rules: List[Rule] = []
        while not self._stream.at_end():
            token = self._peek()
            statement = self.parse_statement()
            if not isinstance(statement, RuleDefinition):
                raise ParseError("rule definition", token.describe(), token.loc)
            rules.append(statement.rule)
        return rules


# -----------------------------------------------------------------------------
# Convenience functions
# -----------------------------------------------------------------------------

def parse_expr(source: str, file_path: Optional[str] = None) -> Expression:
    """Parse a single expression; the whole source must be consumed."""
    parser = Parser(source, file_path)
    expr = parser.parse_expr()
    parser.expect_end()
    return expr


def parse_statement(source: str, file_path: Optional[str] = None) -> Statement:
    """Parse exactly one flat statement (a REPL line)."""
    parser = Parser(source, file_path)
    statement = parser.parse_statement()
    parser.expect_end()
    return statement


def parse_program(source: str, file_path: Optional[str] = None) -> List[Statement]:
    return Parser(source, file_path).parse_program()


def parse_rules(source: str, file_path: Optional[str] = None) -> List[Rule]:
    return Parser(source, file_path).parse_rules()


# ============================================================
# Expression Builder
# ============================================================

class _ExprBuilder:
    """
    Expression builder for noq.

    Examples:
        from noq import E

        E("swap(pair(A, B))")           # parse surface syntax
        E.app("f", "a", E.app("g", "X"))  # f(a, g(X))
        E.op("+", "a", "b")               # a + b
    """

    def __call__(self, s: str) -> Expression:
        return parse_expr(s)

    def _coerce(self, item) -> Expression:
        if isinstance(item, str):
            return name_to_expr(item)
        return item

    def app(self, functor, *args) -> Application:
        """Build an application; string arguments become symbols or variables."""
        return Application(self._coerce(functor), tuple(self._coerce(a) for a in args))

    def op(self, op: str, lhs, rhs) -> Application:
        return binary(op, self._coerce(lhs), self._coerce(rhs))

    def __repr__(self) -> str:
        return "E (expression builder)"


E = _ExprBuilder()
