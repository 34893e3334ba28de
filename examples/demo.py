#!/usr/bin/env python3
"""
noq Feature Demonstration

This script walks through the main features of the noq library.
"""

from pathlib import Path
from noq import (
    E, Interpreter, Rule, RuleTable, ShapingSession,
    ALL, DEEP, nth, apply_rule, format_expr, pattern_match,
    NoqError,
)


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def demo_expressions():
    """Demonstrate parsing and printing expressions."""
    section("Expressions")

    for source in ["f(a, g(B))", "a+b*c", "(a + b)*c", "a^b^c", "f(a)(b)"]:
        expr = E(source)
        print(f"  {source:12} => {format_expr(expr):12} {expr!r}")


def demo_matching():
    """Demonstrate pattern matching."""
    section("Pattern Matching")

    examples = [
        ("swap(pair(A, B))", "swap(pair(f(a), g(b)))"),
        ("f(X, X)", "f(g(a), g(a))"),
        ("f(X, X)", "f(g(a), g(b))"),
        ("X + 0", "a*b + 0"),
    ]

    for pattern, subject in examples:
        bindings = pattern_match(E(pattern), E(subject))
        print(f"  {pattern} ~ {subject}: {bindings!r}")


def demo_strategies():
    """Demonstrate the four application strategies."""
    section("Strategies")

    swap = Rule("swap", E("swap(pair(A, B))"), E("pair(B, A)"))
    target = E("swap(pair(swap(pair(x, y)), z))")
    print(f"  Target: {target}")

    for label, strategy in [("first", None), ("all", ALL), ("deep", DEEP),
                            ("0", nth(0)), ("1", nth(1))]:
        if strategy is None:
            result, count = apply_rule(target, swap)
        else:
            result, count = apply_rule(target, swap, strategy)
        print(f"    apply {label:5} swap => {result}  ({count} rewrite(s))")


def demo_session():
    """Demonstrate a shaping session with undo and tracing."""
    section("Shaping Sessions")

    rules = RuleTable.from_source('''
        rule distribute A*(B + C) = A*B + A*C
        rule mul_one X*1 = X
    ''')

    session = ShapingSession(E("x*(y*1 + z)"))
    session.apply(rules.get("mul_one"))
    session.apply(rules.get("distribute"))
    session.apply(rules.get("distribute").reversed())
    session.undo()
    print("  Trace:")
    for line in session.trace().splitlines():
        print(f"    {line}")
    print(f"  Result: {session.done()}")


def demo_scripts():
    """Demonstrate running noq scripts."""
    section("Scripts")

    examples_dir = Path(__file__).parent

    for name in ["swap.noq", "shaping.noq"]:
        print(f"\n  {name}:")
        interp = Interpreter(base_path=examples_dir,
                             echo=lambda expr: print(f"     => {expr}"))
        interp.run_file(examples_dir / name)
        print(f"  Results: {', '.join(str(result) for result in interp.results)}")


def demo_errors():
    """Demonstrate error reporting."""
    section("Errors")

    interp = Interpreter()
    for source in [
        "rule bad f(X) = g(Y)",
        "shape f(a)\napply nosuchrule\ndone",
        "shape f(a)\napply rule g(X) = X\ndone",
        "shape f(a\ndone",
    ]:
        try:
            interp.run_source(source, "demo.noq")
        except NoqError as e:
            print(f"  {e}")
        interp.session = None


def main():
    """Run all demonstrations."""
    print("noq - Not Quite a proof assistant")
    print("Feature Demonstration")

    demo_expressions()
    demo_matching()
    demo_strategies()
    demo_session()
    demo_scripts()
    demo_errors()

    print("\n" + "="*60)
    print(" Demo complete!")
    print("="*60)


if __name__ == "__main__":
    main()
