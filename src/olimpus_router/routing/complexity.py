"""Complexity scoring for the ``complexity`` matcher.

The score grows with the request size (one point per started block of ten
lines) and with each distinct technical keyword present. Scores map onto
ordered tiers, so a longer or more technical request never lands in a lower
tier than a shorter one.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Final

from .models import ComplexityTier

# ═══════════════════════════════════════════════════════════════════════════
# COMPLEXITY SIGNALS
# ═══════════════════════════════════════════════════════════════════════════

TECHNICAL_KEYWORDS: Final[tuple[str, ...]] = (
    "architecture",
    "performance",
    "optimization",
    "database",
    "async",
    "concurrent",
    "algorithm",
    "data structure",
    "api",
    "integration",
    "security",
    "encryption",
    "authentication",
    "deployment",
    "infrastructure",
    "testing",
    "refactor",
    "debug",
    "trace",
    "profile",
)

LINES_PER_POINT: Final[int] = 10

# Minimum score for each tier, highest first
TIER_THRESHOLDS: Final[tuple[tuple[ComplexityTier, int], ...]] = (
    (ComplexityTier.HIGH, 10),
    (ComplexityTier.MEDIUM, 5),
    (ComplexityTier.LOW, 0),
)


# ═══════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ComplexityResult:
    """Result of complexity estimation."""

    score: int
    lines: int
    keywords: tuple[str, ...]
    tier: ComplexityTier

    @property
    def reasoning(self) -> str:
        parts = [f"{self.lines} line(s)"]
        if self.keywords:
            parts.append(f"technical: {', '.join(self.keywords)}")
        return f"score {self.score} ({'; '.join(parts)}) -> {self.tier.value}"


# ═══════════════════════════════════════════════════════════════════════════
# ANALYSIS FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════════


def count_lines(text: str) -> int:
    """Number of lines, counting an empty string as one line."""
    return text.count("\n") + 1


def find_technical_keywords(text: str) -> tuple[str, ...]:
    lower_text = text.lower()
    return tuple(keyword for keyword in TECHNICAL_KEYWORDS if keyword in lower_text)


def tier_for_score(score: int) -> ComplexityTier:
    for tier, minimum in TIER_THRESHOLDS:
        if score >= minimum:
            return tier
    return ComplexityTier.LOW


def estimate_complexity(prompt: str) -> ComplexityResult:
    """Estimate the complexity tier of a request."""
    lines = count_lines(prompt)
    keywords = find_technical_keywords(prompt)
    score = math.ceil(lines / LINES_PER_POINT) + len(keywords)
    return ComplexityResult(score=score, lines=lines, keywords=keywords, tier=tier_for_score(score))
