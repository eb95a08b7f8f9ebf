"""
Matcher Evaluator - pure predicate evaluation for one matcher and one request.

Every evaluator returns ``(matched, reason)``; none of them raises for bad
input. An invalid regular expression is reported as a non-match.
"""

from __future__ import annotations

import logging
import re
from typing import NamedTuple, assert_never

from .complexity import estimate_complexity
from .models import (
    AlwaysMatcher,
    ComplexityMatcher,
    KeywordMatcher,
    Matcher,
    MatchMode,
    ProjectContextMatcher,
    RegexMatcher,
    RoutingContext,
)

logger = logging.getLogger(__name__)

DEFAULT_REGEX_FLAGS = "i"

_REGEX_FLAGS: dict[str, re.RegexFlag] = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "a": re.ASCII,
    "u": re.UNICODE,
}
# Accepted for compatibility with JavaScript-style flag strings; no effect here
_IGNORED_FLAGS = frozenset("gy")


class MatchResult(NamedTuple):
    matched: bool
    reason: str


def evaluate(matcher: Matcher, context: RoutingContext) -> MatchResult:
    """Evaluate a single matcher against a routing context."""
    if isinstance(matcher, KeywordMatcher):
        return _evaluate_keyword(matcher, context)
    if isinstance(matcher, ComplexityMatcher):
        return _evaluate_complexity(matcher, context)
    if isinstance(matcher, RegexMatcher):
        return _evaluate_regex(matcher, context)
    if isinstance(matcher, ProjectContextMatcher):
        return _evaluate_project_context(matcher, context)
    if isinstance(matcher, AlwaysMatcher):
        return MatchResult(True, "always match")
    assert_never(matcher)


def _evaluate_keyword(matcher: KeywordMatcher, context: RoutingContext) -> MatchResult:
    prompt = context.prompt.lower()
    found = [kw for kw in matcher.keywords if kw.lower() in prompt]
    missing = [kw for kw in matcher.keywords if kw.lower() not in prompt]

    if matcher.mode is MatchMode.ANY:
        matched = bool(found)
    else:
        matched = not missing

    if matched:
        return MatchResult(True, f"matched keywords: {', '.join(found)}")
    if matcher.mode is MatchMode.ANY:
        return MatchResult(False, f"no keywords found: {', '.join(matcher.keywords)}")
    return MatchResult(False, f"missing keywords: {', '.join(missing)}")


def _evaluate_complexity(matcher: ComplexityMatcher, context: RoutingContext) -> MatchResult:
    result = estimate_complexity(context.prompt)
    matched = result.tier.rank >= matcher.threshold.rank
    comparison = ">=" if matched else "<"
    return MatchResult(
        matched,
        f"complexity {result.tier.value} {comparison} {matcher.threshold.value} "
        f"({result.reasoning})",
    )


def compile_pattern(pattern: str, flags: str | None = None) -> re.Pattern[str]:
    """Compile a pattern with a JavaScript-style flag string.

    Raises:
        re.error: if the pattern does not compile or a flag is unknown
    """
    compiled_flags = 0
    for flag in flags or DEFAULT_REGEX_FLAGS:
        if flag in _IGNORED_FLAGS:
            continue
        if flag not in _REGEX_FLAGS:
            raise re.error(f"unknown flag {flag!r}")
        compiled_flags |= _REGEX_FLAGS[flag]
    return re.compile(pattern, compiled_flags)


def _evaluate_regex(matcher: RegexMatcher, context: RoutingContext) -> MatchResult:
    try:
        regex = compile_pattern(matcher.pattern, matcher.flags)
    except re.error as e:
        logger.warning(f"Invalid regex pattern {matcher.pattern!r}: {e}")
        return MatchResult(False, f"invalid pattern /{matcher.pattern}/: {e}")

    if regex.search(context.prompt):
        return MatchResult(True, f"matched pattern: /{matcher.pattern}/{matcher.flags or ''}")
    return MatchResult(False, f"pattern not found: /{matcher.pattern}/{matcher.flags or ''}")


def _evaluate_project_context(
    matcher: ProjectContextMatcher, context: RoutingContext
) -> MatchResult:
    project = context.project
    if project is None:
        return MatchResult(False, "context unavailable")

    missing_files = [path for path in matcher.has_files if path not in project.files]
    missing_deps = [dep for dep in matcher.has_deps if dep not in project.dependencies]

    if missing_files or missing_deps:
        parts = []
        if missing_files:
            parts.append(f"missing files: {', '.join(missing_files)}")
        if missing_deps:
            parts.append(f"missing deps: {', '.join(missing_deps)}")
        return MatchResult(False, "; ".join(parts))
    return MatchResult(True, matched_content(matcher, context))


def matched_content(matcher: Matcher, context: RoutingContext) -> str:
    """Describe what a (matching) matcher matched, for logs and analytics."""
    if isinstance(matcher, KeywordMatcher):
        prompt = context.prompt.lower()
        found = [kw for kw in matcher.keywords if kw.lower() in prompt]
        return f"matched keywords: {', '.join(found)}"
    if isinstance(matcher, ComplexityMatcher):
        return f"complexity score >= {matcher.threshold.value}"
    if isinstance(matcher, RegexMatcher):
        return f"matched pattern: /{matcher.pattern}/{matcher.flags or ''}"
    if isinstance(matcher, ProjectContextMatcher):
        parts = []
        if matcher.has_files:
            parts.append(f"files: {', '.join(matcher.has_files)}")
        if matcher.has_deps:
            parts.append(f"deps: {', '.join(matcher.has_deps)}")
        return "; ".join(parts) if parts else "project context match"
    if isinstance(matcher, AlwaysMatcher):
        return "always match"
    assert_never(matcher)
