"""Ordered exclusion rules for files and directories.

Patterns are classified once into typed rules and evaluated left to right
against a candidate, keeping a single running verdict. Only ``*`` and ``?`` make a
pattern a glob; brackets alone are part of a literal name:

- ``name``          bare name, matches the basename at any depth
- ``path/to/x``     exact path relative to the scan root
- ``*.log``         glob, matched against the basename of files
- ``src/*.py``      glob with a slash, matched segment-wise against the relative path of files
- ``base/*``        immediate children of ``base`` (files and directories)
- ``base/**``       the directory ``base`` and every directory beneath it
- ``!path``         re-includes ``path`` and everything beneath it

A later rule always overrides an earlier one, so ``["a/**", "!a/keep"]`` keeps
``a/keep`` while ``["!a/keep", "a/**"]`` does not.
"""

from __future__ import annotations

import fnmatch
from functools import lru_cache
from typing import TYPE_CHECKING

from concat_tree.config import GLOB_CHARS, CandidateKind, ExclusionRule, PatternKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


def normalize_pattern(pattern: str) -> str:
    """Normalize a raw exclusion pattern.

    Strips whitespace, converts backslashes to forward slashes, and removes a
    leading ``./`` and a trailing ``/`` (after the negation marker, if any).

    Args:
        pattern (str): the pattern as typed by the user

    Returns:
        str: the normalized pattern, or an empty string if nothing is left
    """
    p = (pattern or "").strip().replace("\\", "/")
    negated = p.startswith("!")
    body = p[1:] if negated else p
    while body.startswith("./"):
        body = body[2:]
    if len(body) > 1:
        body = body.rstrip("/")
    if not body:
        return ""
    return f"!{body}" if negated else body


def classify_pattern(pattern: str) -> ExclusionRule:
    """Classify a normalized pattern into a typed exclusion rule.

    Args:
        pattern (str): a pattern already passed through `normalize_pattern`

    Returns:
        ExclusionRule: the rule, with its kind and the target it is compared with
    """
    if pattern.startswith("!"):
        return ExclusionRule(pattern=pattern, kind=PatternKind.NEGATION, target=pattern[1:])
    if pattern.endswith("/**") and len(pattern) > 3:
        return ExclusionRule(pattern=pattern, kind=PatternKind.SUBTREE, target=pattern[:-3])
    if pattern.endswith("/*") and len(pattern) > 2 and not _has_glob(pattern[:-2]):
        return ExclusionRule(pattern=pattern, kind=PatternKind.WILDCARD_CHILDREN, target=pattern[:-2])
    if _has_glob(pattern):
        return ExclusionRule(pattern=pattern, kind=PatternKind.GLOB, target=pattern)
    if "/" in pattern:
        return ExclusionRule(pattern=pattern, kind=PatternKind.RELATIVE_PATH, target=pattern)
    return ExclusionRule(pattern=pattern, kind=PatternKind.BARE_NAME, target=pattern)


@lru_cache(maxsize=64)
def _compile(patterns: tuple[str, ...]) -> tuple[ExclusionRule, ...]:
    rules: list[ExclusionRule] = []
    for raw in patterns:
        p = normalize_pattern(raw)
        if p:
            rules.append(classify_pattern(p))
    return tuple(rules)


def compile_patterns(patterns: Iterable[str]) -> tuple[ExclusionRule, ...]:
    """Normalize and classify exclusion patterns, keeping their order.

    Empty patterns are dropped. Nothing is validated: a malformed pattern simply
    never matches.

    Args:
        patterns (Iterable[str]): the raw patterns, in the order given by the user

    Returns:
        tuple[ExclusionRule, ...]: the classified rules in the same order
    """
    return _compile(tuple(patterns))


def _has_glob(text: str) -> bool:
    return any(c in GLOB_CHARS for c in text)


def _is_under(rel: str, base: str) -> bool:
    return rel == base or rel.startswith(base + "/")


def _is_immediate_child(rel: str, base: str) -> bool:
    head, sep, tail = rel.rpartition("/")
    return bool(sep) and head == base and bool(tail)


def _glob_path_match(rel: str, pattern: str) -> bool:
    """Match a relative path against a glob segment by segment (``*`` never crosses ``/``)."""
    rel_parts = rel.split("/")
    pat_parts = pattern.split("/")
    if len(rel_parts) != len(pat_parts):
        return False
    return all(fnmatch.fnmatchcase(r, p) for r, p in zip(rel_parts, pat_parts, strict=True))


def rule_matches(rule: ExclusionRule, rel: str, kind: CandidateKind) -> bool:
    """Check whether a single rule applies to a candidate.

    For negations this tells whether the candidate lies in the re-included scope.

    Args:
        rule (ExclusionRule): the rule to test
        rel (str): the candidate path relative to the scan root, POSIX separators
        kind (CandidateKind): whether the candidate is a file or a directory

    Returns:
        bool: True if the rule applies to the candidate
    """
    basename = rel.rpartition("/")[2]
    target = rule.target

    if rule.kind is PatternKind.NEGATION:
        return _is_under(rel, target)

    # Every plain pattern also names an exact relative path.
    if rel == rule.pattern:
        return True

    if rule.kind is PatternKind.BARE_NAME:
        return basename == target
    if rule.kind is PatternKind.GLOB:
        if kind is not CandidateKind.FILE:
            return False
        if "/" in target:
            return _glob_path_match(rel, target)
        return fnmatch.fnmatchcase(basename, target)
    if rule.kind is PatternKind.WILDCARD_CHILDREN:
        return _is_immediate_child(rel, target)
    if rule.kind is PatternKind.SUBTREE:
        return kind is CandidateKind.DIRECTORY and _is_under(rel, target)
    return False


def _as_rules(patterns: Sequence[str] | Sequence[ExclusionRule]) -> Sequence[ExclusionRule]:
    if all(isinstance(p, ExclusionRule) for p in patterns):
        return patterns  # type: ignore[return-value]
    return compile_patterns(str(p) for p in patterns)


def is_excluded(
    candidate_path: str,
    kind: CandidateKind,
    exclude_patterns: Sequence[str] | Sequence[ExclusionRule],
    *,
    inherited: bool = False,
) -> bool:
    """Decide whether a candidate is excluded by the ordered exclusion rules.

    Every rule is evaluated in order; a matching exclusion sets the verdict to
    excluded and a matching negation sets it back to not excluded. The last
    matching rule wins.

    Args:
        candidate_path (str): the candidate path relative to the scan root
        kind (CandidateKind): whether the candidate is a file or a directory
        exclude_patterns (Sequence[str] | Sequence[ExclusionRule]): raw patterns or
            rules from `compile_patterns`, in order
        inherited (bool, optional): starting verdict; True when the enclosing
            directory is itself excluded and was entered only because a negation
            targets something beneath it. Defaults to False.

    Returns:
        bool: True if the candidate is excluded
    """
    rel = candidate_path.replace("\\", "/").strip("/")
    verdict = inherited
    for rule in _as_rules(exclude_patterns):
        if rule_matches(rule, rel, kind):
            verdict = not rule.is_negation
    return verdict


def has_negation_beneath(
    relative_dir: str,
    exclude_patterns: Sequence[str] | Sequence[ExclusionRule],
) -> bool:
    """Check whether a negation re-includes something strictly below a directory.

    An excluded directory is still entered in that case, so the re-included
    paths can be reached.

    Args:
        relative_dir (str): the directory path relative to the scan root
        exclude_patterns (Sequence[str] | Sequence[ExclusionRule]): raw patterns or compiled rules

    Returns:
        bool: True if some negation targets a path beneath `relative_dir`
    """
    rel = relative_dir.replace("\\", "/").strip("/")
    return any(
        rule.is_negation and rule.target.startswith(rel + "/")
        for rule in _as_rules(exclude_patterns)
    )
