#!/usr/bin/env python3
"""
noq Command-Line Interface

Provides an interactive REPL, script execution and a parser debugger.

Usage:
    noq                           # Start REPL
    noq script.noq                # Run script
    noq -r rules.noq              # REPL with rules preloaded
    noq --debug-parser            # Parse expressions and show their structure

Script Format (.noq files):
    # Comments start with #
    rule swap swap(pair(A, B)) = pair(B, A)

    shape swap(pair(f(a), g(b)))
        apply all swap
    done

REPL Commands:
    :help              Show help
    :rules             List defined rules
    :trace             Show the current shaping so far
    :quit              Exit
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .errors import DuplicateRule, NoqError
from .expr import Expression, format_expr
from .interpreter import Interpreter
from .lexer import KEYWORDS
from .parser import Parser, parse_statement
from .rewriter import DEFAULT_DEEP_LIMIT

# Try to import readline for better REPL experience
try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False

DEFAULT_PROMPT = "noq> "
SHAPING_PROMPT = "> "


def format_error(err: NoqError) -> str:
    """Render an error the way the script runner reports it."""
    if err.loc is not None:
        text = f"{err.loc}: ERROR: {err.message}"
    else:
        text = f"ERROR: {err.message}"
    if isinstance(err, DuplicateRule) and err.previous is not None:
        text += f"\n{err.previous}: Previous definition is located here"
    return text


class NoqCompleter:
    """Tab completer for the noq REPL."""

    COMMANDS = [":help", ":rules", ":trace", ":quit", ":exit", ":q"]

    def __init__(self, repl: 'NoqREPL'):
        self.repl = repl
        self.matches: List[str] = []

    def complete(self, text: str, state: int) -> Optional[str]:
        """Return the next possible completion for 'text'."""
        if state == 0:
            line = readline.get_line_buffer() if HAS_READLINE else ""
            self.matches = self._get_matches(text, line)

        try:
            return self.matches[state]
        except IndexError:
            return None

    def _get_matches(self, text: str, line: str) -> List[str]:
        line = line.lstrip()

        if text.startswith(":") or (line.startswith(":") and " " not in line):
            return [c for c in self.COMMANDS if c.startswith(text)]

        # Rule names after apply/delete, keywords elsewhere
        words = line.split()
        if words and words[0] in ("apply", "delete"):
            rules = self.repl.interpreter.rules
            candidates = (rules.names() + rules.builtin_names()
                          + ["all", "deep", "first", "rule", "reverse"])
        else:
            candidates = list(KEYWORDS)
        return [c for c in candidates if c.startswith(text)]


class NoqREPL:
    """Interactive REPL for noq."""

    def __init__(self, interpreter: Optional[Interpreter] = None):
        self.interpreter = interpreter or Interpreter()
        self.interpreter.echo = self._echo
        self.running = True
        self._output: List[str] = []

        # Set up readline history and completion
        if HAS_READLINE:
            self.history_file = Path.home() / ".noq_history"
            try:
                readline.read_history_file(self.history_file)
            except OSError:
                pass
            readline.set_history_length(1000)

            self.completer = NoqCompleter(self)
            readline.set_completer(self.completer.complete)
            readline.parse_and_bind("tab: complete")
            readline.set_completer_delims(" \t\n(),")

    def _echo(self, expr: Expression) -> None:
        self._output.append(f" => {format_expr(expr)}")

    @property
    def prompt(self) -> str:
        return SHAPING_PROMPT if self.interpreter.shaping else DEFAULT_PROMPT

    def save_history(self):
        """Save readline history."""
        if HAS_READLINE:
            try:
                readline.write_history_file(self.history_file)
            except OSError as e:
                print(f"Could not save history: {e}", file=sys.stderr)

    def handle_command(self, line: str) -> Optional[str]:
        """
        Handle a REPL command (starts with :).

        Returns a message to print, or None.
        """
        parts = line[1:].split(None, 1)
        if not parts:
            return "Unknown command. Type :help for help."

        cmd = parts[0].lower()

        if cmd == "help":
            return self.help_text()

        elif cmd in ("quit", "exit", "q"):
            self.running = False
            return None

        elif cmd == "rules":
            rules = self.interpreter.rules
            if not len(rules):
                return "No rules defined"
            return "\n".join(str(rule) for rule in rules)

        elif cmd == "trace":
            if self.interpreter.session is None:
                return "No shaping in place"
            return self.interpreter.session.trace()

        else:
            return f"Unknown command: {cmd}. Type :help for help."

    def help_text(self) -> str:
        """Return help text."""
        return """noq REPL Commands:
  :help              Show this help
  :rules             List all defined rules
  :trace             Show the current shaping so far
  :quit              Exit

Statements:
  rule NAME HEAD = BODY        Define a rule (also: NAME :: HEAD = BODY)
  shape EXPR                   Start shaping an expression
  apply [first|all|deep|N] NAME  Apply a rule (first match by default)
  apply rule HEAD = BODY       Apply an anonymous rule
  apply reverse NAME           Apply a rule right to left
  apply replace                Rewrite apply_rule(STRATEGY, HEAD, BODY, EXPR)
  undo                         Undo the last apply
  done                         Finish shaping
  delete NAME                  Delete a rule
  load "PATH" / save "PATH"    Load or save rules
  quit                         Exit
"""

    def format_caret(self, err: NoqError, prompt: str) -> str:
        """Point at the offending column under the prompt, then the message."""
        if err.loc is None:
            return f"ERROR: {err.message}"
        caret = " " * (len(prompt) + err.loc.col - 1) + "^"
        return f"{caret}\nERROR: {err.message}"

    def process_line(self, line: str) -> Optional[str]:
        """
        Process a single line of input.

        Returns the text to print, or None.
        """
        prompt = self.prompt
        line = line.strip()

        # Empty line or comment
        if not line or line.startswith("#"):
            return None

        if line.startswith(":") and not line.startswith("::"):
            return self.handle_command(line)

        self._output = []
        try:
            statement = parse_statement(line)
            self.interpreter.execute(statement)
        except NoqError as e:
            return self.format_caret(e, prompt)
        finally:
            if self.interpreter.stopped:
                self.running = False

        return "\n".join(self._output) or None

    def run(self):
        """Run the REPL loop."""
        print(f"noq {__version__}")
        print("Type :help for help, quit or :quit to exit")
        print()

        while self.running:
            try:
                line = input(self.prompt)
                result = self.process_line(line)
                if result:
                    print(result)
            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                print()
                continue

        self.save_history()


class ScriptRunner:
    """Runs noq scripts."""

    def __init__(self, interpreter: Optional[Interpreter] = None):
        self.interpreter = interpreter or Interpreter()

    def run_script(self, path: Path, quiet: bool = False) -> int:
        """
        Run a script file.

        The whole file is parsed first; a syntax error runs nothing. Shaping
        output is printed as ` => expr` lines unless quiet.

        Returns:
            Exit code (0 for success)
        """
        try:
            source = path.read_text(encoding="utf-8")
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1

        self.interpreter.base_path = path.parent
        if not quiet:
            self.interpreter.echo = lambda expr: print(f" => {format_expr(expr)}")

        try:
            self.interpreter.run_source(source, str(path))
        except NoqError as e:
            print(format_error(e), file=sys.stderr)
            return 1
        return 0


def debug_parser() -> int:
    """Read expressions and print how they parse."""
    prompt = "expr> "
    while True:
        try:
            line = input(prompt)
        except EOFError:
            print()
            return 0
        if not line.strip():
            continue
        parser = Parser(line.strip())
        try:
            expr = parser.parse_expr()
            rest = parser.remaining()
        except NoqError as e:
            caret = " " * (len(prompt) + e.loc.col - 1) + "^" if e.loc else ""
            print(f"{caret}\nERROR: {e.message}", file=sys.stderr)
            continue
        print(f"  Display:  {format_expr(expr)}")
        print(f"  Debug:    {expr!r}")
        print(f"  Unparsed: {[token.kind.name for token in rest]}")


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="noq",
        description="noq - shape expressions by applying rewrite rules",
        epilog="Examples:\n"
               "  noq                      Start REPL\n"
               "  noq script.noq           Run script\n"
               "  noq -r rules.noq         REPL with rules\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "script",
        nargs="?",
        help="Script file to run (.noq)"
    )

    parser.add_argument(
        "-r", "--rules",
        action="append",
        default=[],
        help="Load rules from file (can be specified multiple times)"
    )

    parser.add_argument(
        "--deep-limit",
        type=int,
        default=DEFAULT_DEEP_LIMIT,
        help=f"Maximum rewrites for 'apply deep' (default: {DEFAULT_DEEP_LIMIT})"
    )

    parser.add_argument(
        "--debug-parser",
        action="store_true",
        help="Parse expressions interactively and show their structure"
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Quiet mode (do not echo shaping steps)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log engine activity to stderr"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if args.debug_parser:
        sys.exit(debug_parser())

    interpreter = Interpreter(deep_limit=args.deep_limit)

    for rules_file in args.rules:
        try:
            interpreter.rules.load_file(Path(rules_file))
        except NoqError as e:
            print(format_error(e), file=sys.stderr)
            sys.exit(1)

    if args.script:
        sys.exit(ScriptRunner(interpreter).run_script(Path(args.script), quiet=args.quiet))

    NoqREPL(interpreter).run()


if __name__ == "__main__":
    main()
