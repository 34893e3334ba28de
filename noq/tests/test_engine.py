"""Tests for the rule table and rule files."""

import os

import pytest

from noq import E
from noq.engine import RuleTable, load_rules_from_source, serialize_rules
from noq.errors import DuplicateRule, Loc, ParseError, RuleNotFound, StorageError
from noq.rewriter import REPLACE, Rule


SWAP = Rule("swap", E("swap(pair(A, B))"), E("pair(B, A)"))
ADD_ZERO = Rule("add_zero", E("X + 0"), E("X"))


class TestRuleTable:
    """Tests for defining, looking up and deleting rules."""

    def test_define_and_get(self):
        table = RuleTable()
        table.define(SWAP)
        assert table.get("swap") is SWAP
        assert "swap" in table
        assert len(table) == 1

    def test_definition_order(self):
        table = RuleTable([SWAP, ADD_ZERO])
        assert table.names() == ["swap", "add_zero"]
        assert list(table) == [SWAP, ADD_ZERO]

    def test_duplicate(self):
        """Redefining a name is an error; the old rule stays."""
        table = RuleTable()
        table.define(Rule("swap", E("a"), E("b"), Loc("a.noq", 1, 1)))
        with pytest.raises(DuplicateRule) as exc_info:
            table.define(SWAP, Loc("a.noq", 5, 1))
        assert exc_info.value.previous == Loc("a.noq", 1, 1)
        assert exc_info.value.loc == Loc("a.noq", 5, 1)
        assert table.get("swap").head == E("a")

    def test_anonymous_rules_rejected(self):
        with pytest.raises(ValueError):
            RuleTable().define(Rule(None, E("a"), E("b")))

    def test_missing_rule(self):
        with pytest.raises(RuleNotFound) as exc_info:
            RuleTable().get("nosuchrule")
        assert exc_info.value.name == "nosuchrule"

    def test_delete(self):
        table = RuleTable([SWAP, ADD_ZERO])
        assert table.delete("swap") is SWAP
        assert table.names() == ["add_zero"]

    def test_delete_missing(self):
        table = RuleTable([SWAP])
        with pytest.raises(RuleNotFound):
            table.delete("add_zero")
        assert len(table) == 1

    def test_delete_then_redefine(self):
        table = RuleTable([SWAP])
        table.delete("swap")
        table.define(Rule("swap", E("a"), E("b")))
        assert table.get("swap").body == E("b")

    def test_getitem(self):
        table = RuleTable([SWAP])
        assert table["swap"] is SWAP
        with pytest.raises(KeyError):
            table["missing"]

    def test_copy_is_independent(self):
        table = RuleTable([SWAP])
        copy = table.copy()
        copy.define(ADD_ZERO)
        assert "add_zero" not in table
        assert copy != table

    def test_clear(self):
        table = RuleTable([SWAP, ADD_ZERO]).clear()
        assert len(table) == 0


class TestBuiltinRules:
    """Tests for rules every table starts with."""

    def test_replace_is_available(self):
        table = RuleTable()
        assert table.get("replace") is REPLACE
        assert "replace" in table
        assert table.builtin_names() == ["replace"]

    def test_not_listed_or_counted(self):
        table = RuleTable([SWAP])
        assert table.names() == ["swap"]
        assert list(table) == [SWAP]
        assert len(table) == 1
        assert table.to_source() == "rule swap swap(pair(A, B)) = pair(B, A)\n"

    def test_cannot_redefine(self):
        """A built-in name is taken; there is no previous definition to show."""
        table = RuleTable()
        with pytest.raises(DuplicateRule) as exc_info:
            table.define(Rule("replace", E("a"), E("b")), Loc("a.noq", 2, 1))
        assert exc_info.value.previous is None
        assert exc_info.value.loc == Loc("a.noq", 2, 1)
        assert table.get("replace") is REPLACE

    def test_load_cannot_redefine(self):
        table = RuleTable([SWAP])
        with pytest.raises(DuplicateRule):
            table.load_source("rule fresh a = b\nrule replace c = d\n")
        assert table.names() == ["swap"]

    def test_delete(self):
        table = RuleTable()
        assert table.delete("replace") is REPLACE
        with pytest.raises(RuleNotFound):
            table.get("replace")
        assert "replace" in RuleTable()

    def test_copy_keeps_builtins(self):
        table = RuleTable()
        table.delete("replace")
        assert "replace" not in table.copy()
        assert RuleTable().copy().get("replace") is REPLACE


class TestRuleSource:
    """Tests for reading rule declarations from text."""

    def test_from_source(self):
        table = RuleTable.from_source("""
            # Swapping
            rule swap swap(pair(A, B)) = pair(B, A)
            add_zero :: X + 0 = X
        """)
        assert list(table) == [SWAP, ADD_ZERO]

    def test_duplicate_in_source(self):
        with pytest.raises(DuplicateRule) as exc_info:
            load_rules_from_source("rule r a = b\nrule r b = c\n", "dup.noq")
        assert exc_info.value.loc == Loc("dup.noq", 2, 1)
        assert exc_info.value.previous == Loc("dup.noq", 1, 1)

    def test_load_is_atomic(self):
        """A file that collides with the table adds nothing."""
        table = RuleTable([SWAP])
        with pytest.raises(DuplicateRule):
            table.load_source("rule fresh a = b\nrule swap c = d\n")
        assert table.names() == ["swap"]

    def test_serialize(self):
        assert serialize_rules([SWAP, ADD_ZERO]) == (
            "rule swap swap(pair(A, B)) = pair(B, A)\n"
            "rule add_zero X + 0 = X\n"
        )


class TestRuleFiles:
    """Tests for loading and saving rule files."""

    def test_save_and_load(self, tmp_path):
        """A saved table loads back equal."""
        path = tmp_path / "rules.noq"
        table = RuleTable.from_source("""
            rule swap swap(pair(A, B)) = pair(B, A)
            rule assoc (A + B) + C = A + (B + C)
            rule pow_pow (A^B)^C = A^(B*C)
        """)
        table.save_file(path)
        assert RuleTable.from_file(path) == table

    def test_save_replaces_file(self, tmp_path):
        path = tmp_path / "rules.noq"
        path.write_text("old contents\n")
        RuleTable([SWAP]).save_file(path)
        assert path.read_text() == "rule swap swap(pair(A, B)) = pair(B, A)\n"
        assert os.listdir(tmp_path) == ["rules.noq"]

    def test_save_empty_table(self, tmp_path):
        path = tmp_path / "empty.noq"
        RuleTable().save_file(path)
        assert path.read_text() == ""
        assert len(RuleTable.from_file(path)) == 0

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(StorageError) as exc_info:
            RuleTable().load_file(tmp_path / "missing.noq")
        assert isinstance(exc_info.value.cause, FileNotFoundError)

    def test_save_to_missing_directory(self, tmp_path):
        table = RuleTable([SWAP])
        with pytest.raises(StorageError):
            table.save_file(tmp_path / "no" / "such" / "rules.noq")

    def test_load_malformed_file(self, tmp_path):
        """Syntax errors point into the rule file; nothing is loaded."""
        path = tmp_path / "bad.noq"
        path.write_text("rule ok a = b\nrule broken f(X = X\n")
        table = RuleTable()
        with pytest.raises(ParseError) as exc_info:
            table.load_file(path)
        assert exc_info.value.loc.file_path == str(path)
        assert exc_info.value.loc.row == 2
        assert len(table) == 0

    def test_load_rejects_commands(self, tmp_path):
        path = tmp_path / "script.noq"
        path.write_text("rule ok a = b\nshape a\ndone\n")
        with pytest.raises(ParseError):
            RuleTable().load_file(path)
