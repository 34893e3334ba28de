"""
Rule table and rule files for noq.

A rule file is a sequence of rule declarations in either syntax:

    # Comment
    rule swap swap(pair(A, B)) = pair(B, A)
    add_zero :: X + 0 = X

Loading is all-or-nothing: the whole file is parsed and checked against the
table before any rule is added. Saving writes a temporary file next to the
target and renames it over the target, so a failed save leaves the old file
in place.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Union

from .errors import DuplicateRule, Loc, RuleNotFound, StorageError
from .parser import parse_rules
from .rewriter import BUILTIN_RULES, AnyRule, Rule

logger = logging.getLogger(__name__)


def load_rules_from_source(text: str, file_path: Optional[str] = None) -> List[Rule]:
    """
    Parse rule declarations from text.

    Raises:
        LexError, ParseError: Malformed source
        UnboundBodyVariable: A rule body uses a variable its head does not bind
        DuplicateRule: The same name is declared twice in the text
    """
    rules = parse_rules(text, file_path)
    seen: Dict[str, Rule] = {}
    for rule in rules:
        if rule.name in seen:
            raise DuplicateRule(rule.name, rule.loc, seen[rule.name].loc)
        seen[rule.name] = rule
    return rules


def load_rules_from_file(path: Union[str, Path], loc: Optional[Loc] = None) -> List[Rule]:
    """Read and parse a rule file. OSError is reported as StorageError."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise StorageError(str(path), e, loc) from e
    return load_rules_from_source(text, str(path))


def serialize_rules(rules: Iterable[Rule]) -> str:
    """Render named rules as rule declarations, one per line."""
    return "".join(f"{rule}\n" for rule in rules)


class RuleTable:
    """
    Named rules, in definition order.

    Built-in rules such as `replace` are always available through get() and
    their names cannot be redefined, but they are not listed, counted or
    saved with the table.

    Example:
        table = RuleTable.from_source('''
            rule swap swap(pair(A, B)) = pair(B, A)
        ''')
        rule = table.get("swap")
    """

    def __init__(self, rules: Optional[Iterable[Rule]] = None):
        self._rules: Dict[str, Rule] = {}
        self._builtins: Dict[str, AnyRule] = dict(BUILTIN_RULES)
        for rule in rules or []:
            self.define(rule)

    def _check_free(self, rule: Rule, loc: Optional[Loc]) -> None:
        if rule.name in self._builtins:
            raise DuplicateRule(rule.name, loc or rule.loc, None)
        existing = self._rules.get(rule.name)
        if existing is not None:
            raise DuplicateRule(rule.name, loc or rule.loc, existing.loc)

    def define(self, rule: Rule, loc: Optional[Loc] = None) -> Rule:
        """Add a named rule. Raises DuplicateRule if the name is taken."""
        if rule.name is None:
            raise ValueError("anonymous rules cannot be stored in a rule table")
        self._check_free(rule, loc)
        self._rules[rule.name] = rule
        logger.debug("defined %s", rule)
        return rule

    def get(self, name: str, loc: Optional[Loc] = None) -> AnyRule:
        """Look a rule up by name, built-ins included. Raises RuleNotFound."""
        rule = self._rules.get(name) or self._builtins.get(name)
        if rule is None:
            raise RuleNotFound(name, loc)
        return rule

    def delete(self, name: str, loc: Optional[Loc] = None) -> AnyRule:
        """Remove a rule by name and return it. Raises RuleNotFound."""
        rule = self.get(name, loc)
        if name in self._rules:
            del self._rules[name]
        else:
            del self._builtins[name]
        logger.debug("deleted rule %s", name)
        return rule

    def names(self) -> List[str]:
        return list(self._rules)

    def builtin_names(self) -> List[str]:
        return list(self._builtins)

    def clear(self) -> 'RuleTable':
        self._rules = {}
        return self

    def copy(self) -> 'RuleTable':
        new_table = RuleTable()
        new_table._rules = self._rules.copy()
        new_table._builtins = self._builtins.copy()
        return new_table

    # ============================================================
    # Rule files
    # ============================================================

    def merge(self, rules: List[Rule], loc: Optional[Loc] = None) -> List[Rule]:
        """Add several rules at once; on any collision nothing is added."""
        for rule in rules:
            self._check_free(rule, loc)
        for rule in rules:
            self._rules[rule.name] = rule
        return rules

    def load_source(self, text: str, file_path: Optional[str] = None) -> List[Rule]:
        return self.merge(load_rules_from_source(text, file_path))

    def load_file(self, path: Union[str, Path], loc: Optional[Loc] = None) -> List[Rule]:
        """Load a rule file into the table. The table is unchanged on any error."""
        rules = self.merge(load_rules_from_file(path, loc), loc)
        logger.debug("loaded %d rule(s) from %s", len(rules), path)
        return rules

    def to_source(self) -> str:
        return serialize_rules(self._rules.values())

    def save_file(self, path: Union[str, Path], loc: Optional[Loc] = None) -> None:
        """Write the table as a rule file, replacing path atomically."""
        path = Path(path)
        text = self.to_source()
        directory = path.parent
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=directory, prefix=f".{path.name}.",
                suffix=".tmp", delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(text)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(str(path), e, loc) from e
        logger.debug("saved %d rule(s) to %s", len(self._rules), path)

    # ============================================================
    # Container protocol
    # ============================================================

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(list(self._rules.values()))

    def __contains__(self, name: str) -> bool:
        return name in self._rules or name in self._builtins

    def __getitem__(self, name: str) -> Rule:
        if name not in self._rules:
            raise KeyError(f"No rule named '{name}'")
        return self._rules[name]

    def __eq__(self, other):
        if isinstance(other, RuleTable):
            return list(self._rules.items()) == list(other._rules.items())
        return False

    def __repr__(self) -> str:
        return f"RuleTable({len(self._rules)} rules)"

    @classmethod
    def from_source(cls, text: str) -> 'RuleTable':
        table = cls()
        table.load_source(text)
        return table

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'RuleTable':
        table = cls()
        table.load_file(path)
        return table
