"""Simplified ``.gitignore`` matching.

Only whole names are understood: a rule ignores a path when the path is the
rule or lives under it, or when the rule names any single segment of the
path. Globs (``*``, ``**``), negation (``!rule``) and anchoring beyond
stripping one leading and one trailing slash are not supported.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from readme_forge.config import IgnoreRuleSet

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    IgnorePredicate = Callable[[str], bool]


def parse_ignore_rules(text: str) -> tuple[str, ...]:
    """Normalize the raw text of an ignore file into rule strings.

    Args:
        text (str): raw ignore-file content

    Returns:
        tuple[str, ...]: the rules, in file order, without blanks or comments
    """
    rules: list[str] = []
    for line in text.splitlines():
        rule = line.strip()
        if not rule or rule.startswith("#"):
            continue
        rule = rule.removesuffix("/")
        rule = rule.removeprefix("/")
        if rule:
            rules.append(rule)
    return tuple(rules)


def load_rule_set(text: str) -> IgnoreRuleSet:
    """Build a loaded rule set from ignore-file text."""
    return IgnoreRuleSet(rules=parse_ignore_rules(text), loaded=True)


def never_ignored(path: str) -> bool:  # noqa: ARG001
    return False


def compile_ignore_rules(source: str | IgnoreRuleSet | Iterable[str]) -> IgnorePredicate:
    """Compile ignore rules into a predicate over repository-relative paths.

    Args:
        source (str | IgnoreRuleSet | Iterable[str]): raw ignore-file text, a rule set,
            or already normalized rules

    Returns:
        IgnorePredicate: returns True when the path is ignored
    """
    if isinstance(source, str):
        rules = parse_ignore_rules(source)
    elif isinstance(source, IgnoreRuleSet):
        rules = source.rules
    else:
        rules = tuple(source)

    if not rules:
        return never_ignored

    def is_ignored(path: str) -> bool:
        segments = path.split("/")
        for rule in rules:
            if path == rule or path.startswith(rule + "/"):
                return True
            if rule in segments:
                return True
        return False

    return is_ignored
