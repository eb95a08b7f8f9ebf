"""
Routing Data Models

Frozen dataclasses for meta-agent definitions, routing rules, matchers and
request contexts. Nothing in here is mutated once constructed: evaluation and
resolution only ever produce new values.
"""

from __future__ import annotations

import json
import os
import re
import tomllib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from types import MappingProxyType
from typing import Any, ClassVar, Union


class MatchMode(StrEnum):
    """How a keyword matcher combines its keywords."""

    ANY = "any"
    ALL = "all"


class ComplexityTier(StrEnum):
    """Ordered complexity tiers (low < medium < high)."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)


_TIER_ORDER = (ComplexityTier.LOW, ComplexityTier.MEDIUM, ComplexityTier.HIGH)


def _freeze_strings(name: str, values: Iterable[str] | None) -> tuple[str, ...]:
    if isinstance(values, str):
        raise ValueError(f"{name} must be a list of strings, not a string")
    return tuple(values) if values else ()


# ═══════════════════════════════════════════════════════════════════════════
# MATCHERS
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class KeywordMatcher:
    """Matches when any/all keywords occur in the request (case-insensitive)."""

    type: ClassVar[str] = "keyword"

    keywords: tuple[str, ...]
    mode: MatchMode = MatchMode.ANY

    def __post_init__(self) -> None:
        object.__setattr__(self, "keywords", _freeze_strings("keywords", self.keywords))
        object.__setattr__(self, "mode", MatchMode(self.mode))
        if not self.keywords:
            raise ValueError("keywords must contain at least one keyword")


@dataclass(frozen=True)
class ComplexityMatcher:
    """Matches when the observed request complexity reaches a threshold."""

    type: ClassVar[str] = "complexity"

    threshold: ComplexityTier

    def __post_init__(self) -> None:
        object.__setattr__(self, "threshold", ComplexityTier(self.threshold))


@dataclass(frozen=True)
class RegexMatcher:
    """Matches when a regular expression is found in the raw request."""

    type: ClassVar[str] = "regex"

    pattern: str
    flags: str | None = None

    def __post_init__(self) -> None:
        if not self.pattern:
            raise ValueError("pattern must be a non-empty string")


@dataclass(frozen=True)
class ProjectContextMatcher:
    """Matches when the project snapshot has all required files and deps."""

    type: ClassVar[str] = "project_context"

    has_files: tuple[str, ...] = ()
    has_deps: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "has_files", _freeze_strings("has_files", self.has_files))
        object.__setattr__(self, "has_deps", _freeze_strings("has_deps", self.has_deps))


@dataclass(frozen=True)
class AlwaysMatcher:
    """Unconditional matcher, typically the last rule of a definition."""

    type: ClassVar[str] = "always"


Matcher = Union[
    KeywordMatcher,
    ComplexityMatcher,
    RegexMatcher,
    ProjectContextMatcher,
    AlwaysMatcher,
]


def matcher_to_dict(matcher: Matcher) -> dict[str, Any]:
    """Serialize a matcher to its wire form (``{"type": ..., ...}``)."""
    data: dict[str, Any] = {"type": matcher.type}
    if isinstance(matcher, KeywordMatcher):
        data["keywords"] = list(matcher.keywords)
        data["mode"] = matcher.mode.value
    elif isinstance(matcher, ComplexityMatcher):
        data["threshold"] = matcher.threshold.value
    elif isinstance(matcher, RegexMatcher):
        data["pattern"] = matcher.pattern
        if matcher.flags is not None:
            data["flags"] = matcher.flags
    elif isinstance(matcher, ProjectContextMatcher):
        if matcher.has_files:
            data["has_files"] = list(matcher.has_files)
        if matcher.has_deps:
            data["has_deps"] = list(matcher.has_deps)
    return data


# ═══════════════════════════════════════════════════════════════════════════
# RULES & DEFINITIONS
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ConfigOverrides:
    """Per-rule overrides applied on top of the meta-agent's base config.

    The named fields cover what the router itself understands; anything else
    from configuration lands in ``extra`` and is passed through untouched.
    """

    FIELDS: ClassVar[tuple[str, ...]] = ("model", "temperature", "prompt", "variant")

    model: str | None = None
    temperature: float | None = None
    prompt: str | None = None
    variant: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        clash = set(self.extra) & set(self.FIELDS)
        if clash:
            raise ValueError(f"extra must not redefine named fields: {sorted(clash)}")
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ConfigOverrides:
        named = {key: data[key] for key in cls.FIELDS if key in data}
        extra = {key: value for key, value in data.items() if key not in cls.FIELDS}
        return cls(**named, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        """Flat dict of the fields that are set, extras included."""
        data = {key: getattr(self, key) for key in self.FIELDS if getattr(self, key) is not None}
        data.update(self.extra)
        return data


@dataclass(frozen=True)
class RoutingRule:
    """A matcher and the delegate it routes to when it matches."""

    matcher: Matcher
    target_agent: str
    config_overrides: ConfigOverrides | None = None

    def __post_init__(self) -> None:
        if not self.target_agent:
            raise ValueError("target_agent must be a non-empty string")


@dataclass(frozen=True)
class MetaAgentDefinition:
    """A named routing profile: base model plus ordered routing rules."""

    base_model: str
    routing_rules: tuple[RoutingRule, ...]
    delegates_to: tuple[str, ...] = ()
    prompt_template: str | None = None
    temperature: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "routing_rules", tuple(self.routing_rules))
        object.__setattr__(self, "delegates_to", _freeze_strings("delegates_to", self.delegates_to))
        if not self.base_model:
            raise ValueError("base_model must be a non-empty string")


# ═══════════════════════════════════════════════════════════════════════════
# REQUEST CONTEXT
# ═══════════════════════════════════════════════════════════════════════════

_SKIPPED_DIRS = frozenset(
    {".git", ".hg", ".svn", ".venv", "venv", "node_modules", "__pycache__", "dist", "build"}
)
_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


@dataclass(frozen=True)
class ProjectSnapshot:
    """Files present in a project and the dependencies it declares."""

    files: frozenset[str] = frozenset()
    dependencies: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "files", frozenset(self.files))
        object.__setattr__(self, "dependencies", frozenset(self.dependencies))

    @classmethod
    def from_directory(cls, project_dir: Path | str) -> ProjectSnapshot:
        """Scan a project directory into a snapshot.

        Files are recorded as POSIX paths relative to ``project_dir``.
        Dependencies are read from package.json, pyproject.toml and
        requirements.txt when present.
        """
        root = Path(project_dir)
        files: set[str] = set()
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = [d for d in dirnames if d not in _SKIPPED_DIRS]
            base = Path(dirpath).relative_to(root)
            files.update((base / name).as_posix() for name in filenames)
        return cls(files=frozenset(files), dependencies=frozenset(_read_dependencies(root)))


def _read_dependencies(root: Path) -> set[str]:
    deps: set[str] = set()

    package_json = root / "package.json"
    if package_json.is_file():
        try:
            data = json.loads(package_json.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            data = {}
        for section in ("dependencies", "devDependencies", "peerDependencies"):
            if isinstance(data.get(section), dict):
                deps.update(data[section])

    pyproject = root / "pyproject.toml"
    if pyproject.is_file():
        try:
            data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError):
            data = {}
        project = data.get("project", {})
        requirements = list(project.get("dependencies", []))
        for extra in project.get("optional-dependencies", {}).values():
            requirements.extend(extra)
        deps.update(_requirement_names(requirements))
        poetry = data.get("tool", {}).get("poetry", {}).get("dependencies", {})
        deps.update(name for name in poetry if name != "python")

    requirements_txt = root / "requirements.txt"
    if requirements_txt.is_file():
        try:
            lines = requirements_txt.read_text(encoding="utf-8").splitlines()
        except OSError:
            lines = []
        requirements = [line for line in lines if not line.lstrip().startswith(("#", "-"))]
        deps.update(_requirement_names(requirements))

    return deps


def _requirement_names(requirements: Iterable[str]) -> set[str]:
    names = set()
    for requirement in requirements:
        match = _REQUIREMENT_NAME.match(requirement)
        if match:
            names.add(match.group(1))
    return names


@dataclass(frozen=True)
class RoutingContext:
    """Immutable snapshot of one request: raw text plus optional project state."""

    prompt: str
    project: ProjectSnapshot | None = None


# ═══════════════════════════════════════════════════════════════════════════
# RESOLUTION RESULTS
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class AgentConfig:
    """Concrete configuration handed to the delegate."""

    model: str
    prompt: str | None = None
    temperature: float | None = None
    variant: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"model": self.model}
        if self.prompt is not None:
            data["prompt"] = self.prompt
        if self.temperature is not None:
            data["temperature"] = self.temperature
        if self.variant is not None:
            data["variant"] = self.variant
        data.update(self.extra)
        return data


@dataclass(frozen=True)
class ResolvedConfig:
    """Outcome of a successful resolution."""

    target_agent: str
    matcher_type: str
    matched_content: str
    config: AgentConfig
    config_overrides: ConfigOverrides | None = None


@dataclass(frozen=True)
class MatcherEvaluation:
    """One rule's evaluation, as recorded in a debug trace."""

    matcher_type: str
    matched: bool
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"matcher_type": self.matcher_type, "matched": self.matched}
