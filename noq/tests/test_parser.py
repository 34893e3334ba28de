"""Tests for the parser."""

import pytest

from noq import E
from noq.errors import Loc, ParseError, UnboundBodyVariable
from noq.expr import Application, Symbol, Variable
from noq.parser import (
    Apply, Delete, Done, Load, Quit, RuleDefinition, RuleRef, Save, Shape,
    MAX_NESTING, ShapeBlock, Undo, Parser, parse_expr, parse_program, parse_rules,
    parse_statement,
)
from noq.rewriter import ALL, DEEP, FIRST, Rule, nth


class TestExpressions:
    """Tests for expression parsing."""

    def test_application(self):
        assert parse_expr("swap(pair(A, B))") == Application(
            Symbol("swap"), (Application(Symbol("pair"), (Variable("A"), Variable("B"))),)
        )

    def test_number_is_symbol(self):
        assert parse_expr("0") == Symbol("0")

    def test_precedence(self):
        """* binds tighter than +."""
        assert parse_expr("a + b*c") == E.op("+", "a", E.op("*", "b", "c"))

    def test_left_associative(self):
        assert parse_expr("a - b - c") == E.op("-", E.op("-", "a", "b"), "c")

    def test_right_associative_power(self):
        assert parse_expr("a^b^c") == E.op("^", "a", E.op("^", "b", "c"))

    def test_parentheses(self):
        assert parse_expr("(a + b)*c") == E.op("*", E.op("+", "a", "b"), "c")

    def test_chained_application(self):
        """Argument lists chain onto the previous application."""
        assert parse_expr("f(a)(b)") == Application(E("f(a)"), (Symbol("b"),))

    def test_variable_functor(self):
        assert parse_expr("F(x)") == Application(Variable("F"), (Symbol("x"),))

    def test_operator_arguments(self):
        assert parse_expr("f(a + b, c)") == E.app("f", E.op("+", "a", "b"), "c")

    def test_strategy_keywords_as_symbols(self):
        """all and deep are plain symbols inside expressions."""
        assert parse_expr("apply_rule(all, f(X), g(X), a)") == Application(
            Symbol("apply_rule"), (Symbol("all"), E("f(X)"), E("g(X)"), Symbol("a"))
        )
        assert parse_expr("deep") == Symbol("deep")

    def test_other_keywords_are_not_symbols(self):
        with pytest.raises(ParseError):
            parse_expr("f(rule)")


class TestExpressionErrors:
    """Tests for malformed expressions."""

    def test_unclosed_arguments(self):
        with pytest.raises(ParseError) as exc_info:
            parse_expr("f(a")
        assert exc_info.value.found == "end of input"

    def test_empty_arguments(self):
        """f() is not an expression."""
        with pytest.raises(ParseError):
            parse_expr("f()")

    def test_trailing_tokens(self):
        """The whole input must be one expression."""
        with pytest.raises(ParseError) as exc_info:
            parse_expr("a b")
        assert exc_info.value.message == "expected end of input but got symbol 'b'"
        assert exc_info.value.loc == Loc(None, 1, 3)

    def test_dangling_operator(self):
        with pytest.raises(ParseError):
            parse_expr("a +")

    def test_nesting_at_limit(self):
        source = "(" * MAX_NESTING + "a" + ")" * MAX_NESTING
        assert parse_expr(source) == Symbol("a")

    @pytest.mark.parametrize("source", [
        "(" * 300 + "a" + ")" * 300,
        "f(" * 300 + "a" + ")" * 300,
        "a" + "^a" * 300,
    ])
    def test_too_deeply_nested(self, source):
        """Deep nesting is a syntax error, not a crash."""
        with pytest.raises(ParseError) as exc_info:
            parse_statement("shape " + source)
        assert exc_info.value.expected == "less deeply nested expression"

    def test_too_deeply_nested_location(self):
        with pytest.raises(ParseError) as exc_info:
            parse_expr("(" * (MAX_NESTING + 1) + "a" + ")" * (MAX_NESTING + 1))
        assert exc_info.value.found == "'(' '('"
        assert exc_info.value.loc == Loc(None, 1, MAX_NESTING + 1)

    def test_remaining_tokens(self):
        """remaining() hands back what an expression did not consume."""
        parser = Parser("a b c")
        assert parser.parse_expr() == Symbol("a")
        assert [token.text for token in parser.remaining()] == ["b", "c"]


class TestStatements:
    """Tests for single statements."""

    def test_rule_definition(self):
        statement = parse_statement("rule swap swap(pair(A, B)) = pair(B, A)")
        assert isinstance(statement, RuleDefinition)
        assert statement.rule == Rule("swap", E("swap(pair(A, B))"), E("pair(B, A)"))

    def test_double_colon_rule(self):
        """NAME :: HEAD = BODY is the same as rule NAME HEAD = BODY."""
        assert parse_statement("add_zero :: X + 0 = X") == parse_statement(
            "rule add_zero X + 0 = X"
        )

    def test_rule_location(self):
        statement = parse_statement("\n  rule r f(X) = X", "r.noq")
        assert statement.rule.loc == Loc("r.noq", 2, 3)

    def test_unbound_body_variable(self):
        """Body variables must appear in the head."""
        with pytest.raises(UnboundBodyVariable) as exc_info:
            parse_statement("rule bad f(X) = g(X, Y)")
        assert exc_info.value.variable == "Y"

    def test_wildcard_in_body(self):
        """_ binds nothing, so it cannot appear in a body."""
        with pytest.raises(UnboundBodyVariable):
            parse_statement("rule bad f(_) = _")

    def test_shape(self):
        assert parse_statement("shape f(a)") == Shape(None, E("f(a)"))

    @pytest.mark.parametrize("source, strategy", [
        ("apply swap", FIRST),
        ("apply all swap", ALL),
        ("apply deep swap", DEEP),
        ("apply 0 swap", nth(0)),
        ("apply 12 swap", nth(12)),
        ("apply first swap", FIRST),
    ])
    def test_apply_strategies(self, source, strategy):
        assert parse_statement(source) == Apply(None, strategy, RuleRef("swap"))

    def test_first_alone_names_a_rule(self):
        """Without a rule after it, first is the rule name."""
        assert parse_statement("apply first") == Apply(None, FIRST, RuleRef("first"))
        assert parse_statement("apply all first") == Apply(None, ALL, RuleRef("first"))

    @pytest.mark.parametrize("source, applied", [
        ("apply first reverse swap", RuleRef("swap", True)),
        ("apply first rule f(X) = g(X)", Rule(None, E("f(X)"), E("g(X)"))),
        ("apply first 0", RuleRef("0")),
    ])
    def test_first_before_applied_rule(self, source, applied):
        assert parse_statement(source) == Apply(None, FIRST, applied)

    def test_apply_reverse(self):
        assert parse_statement("apply reverse swap") == Apply(None, FIRST, RuleRef("swap", True))
        assert parse_statement("apply reverse reverse swap") == Apply(None, FIRST, RuleRef("swap"))

    def test_apply_anonymous_rule(self):
        statement = parse_statement("apply all rule f(X) = g(X)")
        assert statement.strategy == ALL
        assert statement.applied == Rule(None, E("f(X)"), E("g(X)"))

    def test_apply_reversed_anonymous_rule(self):
        statement = parse_statement("apply reverse rule f(X) = g(X)")
        assert statement.applied == Rule(None, E("g(X)"), E("f(X)"))

    def test_simple_commands(self):
        assert isinstance(parse_statement("undo"), Undo)
        assert isinstance(parse_statement("done"), Done)
        assert isinstance(parse_statement("quit"), Quit)
        assert parse_statement("delete swap") == Delete(None, "swap")

    def test_load_and_save(self):
        assert parse_statement('load "rules.noq"') == Load(None, "rules.noq")
        assert parse_statement('save "out/rules.noq"') == Save(None, "out/rules.noq")

    def test_load_needs_string(self):
        with pytest.raises(ParseError):
            parse_statement("load rules")

    def test_unknown_command(self):
        with pytest.raises(ParseError) as exc_info:
            parse_statement("frobnicate x")
        assert exc_info.value.expected == "command"

    def test_rule_without_name(self):
        with pytest.raises(ParseError):
            parse_statement("rule (a) = b")


class TestPrograms:
    """Tests for whole programs."""

    def test_shape_block(self):
        """A shape and its commands up to done form one block."""
        program = parse_program("""
            rule swap swap(pair(A, B)) = pair(B, A)
            shape swap(pair(f(a), g(b)))
                apply all swap
                undo
                apply swap
            done
        """)
        assert len(program) == 2
        assert isinstance(program[0], RuleDefinition)
        block = program[1]
        assert isinstance(block, ShapeBlock)
        assert block.expr == E("swap(pair(f(a), g(b)))")
        assert [type(s) for s in block.body] == [Apply, Undo, Apply]
        assert isinstance(block.end, Done)

    def test_block_ended_by_quit(self):
        block = parse_program("shape a quit")[0]
        assert isinstance(block.end, Quit)

    def test_rules_inside_block(self):
        """Rule table commands are allowed while shaping."""
        block = parse_program("shape f(a) rule r f(X) = X apply r delete r done")[0]
        assert [type(s) for s in block.body] == [RuleDefinition, Apply, Delete]

    def test_missing_done(self):
        with pytest.raises(ParseError) as exc_info:
            parse_program("shape f(a)\napply r\n")
        assert exc_info.value.found == "end of input"

    def test_nested_shape(self):
        with pytest.raises(ParseError):
            parse_program("shape a shape b done done")

    @pytest.mark.parametrize("source", ["apply swap", "undo", "done"])
    def test_shaping_command_outside_block(self, source):
        with pytest.raises(ParseError):
            parse_program(source)

    def test_top_level_commands(self):
        program = parse_program('rule r a = b delete r save "x.noq" load "x.noq" quit')
        assert [type(s) for s in program] == [RuleDefinition, Delete, Save, Load, Quit]

    def test_empty_program(self):
        assert parse_program("# nothing here\n") == []


class TestRuleFiles:
    """Tests for rule file parsing."""

    def test_parse_rules(self):
        rules = parse_rules("""
            # algebra
            rule add_zero X + 0 = X
            mul_one :: X*1 = X
        """)
        assert [rule.name for rule in rules] == ["add_zero", "mul_one"]

    def test_rule_files_only_hold_rules(self):
        with pytest.raises(ParseError):
            parse_rules("rule r a = b\nshape a done")
