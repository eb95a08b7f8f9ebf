"""
Config File Schema

Pydantic models describing the on-disk shape of ``olimpus.toml`` /
``olimpus.json``. They only validate; each model converts itself into the
frozen routing dataclasses the rest of the router works with.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from olimpus_router.routing.logger import LogOutput
from olimpus_router.routing.models import (
    AlwaysMatcher,
    ComplexityMatcher,
    ComplexityTier,
    ConfigOverrides,
    KeywordMatcher,
    MatchMode,
    MetaAgentDefinition,
    ProjectContextMatcher,
    RegexMatcher,
    RoutingRule,
)
from olimpus_router.routing.registry import DEFAULT_MAX_DEPTH


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ═══════════════════════════════════════════════════════════════════════════
# MATCHERS
# ═══════════════════════════════════════════════════════════════════════════


class KeywordMatcherModel(_Strict):
    type: Literal["keyword"]
    keywords: list[str] = Field(min_length=1)
    mode: MatchMode = MatchMode.ANY

    def to_matcher(self) -> KeywordMatcher:
        return KeywordMatcher(keywords=tuple(self.keywords), mode=self.mode)


class ComplexityMatcherModel(_Strict):
    type: Literal["complexity"]
    threshold: ComplexityTier

    def to_matcher(self) -> ComplexityMatcher:
        return ComplexityMatcher(threshold=self.threshold)


class RegexMatcherModel(_Strict):
    type: Literal["regex"]
    pattern: str = Field(min_length=1)
    flags: str | None = None

    def to_matcher(self) -> RegexMatcher:
        return RegexMatcher(pattern=self.pattern, flags=self.flags)


class ProjectContextMatcherModel(_Strict):
    type: Literal["project_context"]
    has_files: list[str] = Field(default_factory=list)
    has_deps: list[str] = Field(default_factory=list)

    def to_matcher(self) -> ProjectContextMatcher:
        return ProjectContextMatcher(has_files=tuple(self.has_files), has_deps=tuple(self.has_deps))


class AlwaysMatcherModel(_Strict):
    type: Literal["always"]

    def to_matcher(self) -> AlwaysMatcher:
        return AlwaysMatcher()


MatcherModel = Annotated[
    Union[
        KeywordMatcherModel,
        ComplexityMatcherModel,
        RegexMatcherModel,
        ProjectContextMatcherModel,
        AlwaysMatcherModel,
    ],
    Field(discriminator="type"),
]


# ═══════════════════════════════════════════════════════════════════════════
# RULES & META-AGENTS
# ═══════════════════════════════════════════════════════════════════════════


class ConfigOverridesModel(BaseModel):
    """Named overrides; unknown keys are kept and passed through as extras."""

    model_config = ConfigDict(extra="allow")

    model: str | None = None
    temperature: float | None = None
    prompt: str | None = None
    variant: str | None = None

    def to_overrides(self) -> ConfigOverrides:
        return ConfigOverrides(
            model=self.model,
            temperature=self.temperature,
            prompt=self.prompt,
            variant=self.variant,
            extra=dict(self.model_extra or {}),
        )


class RoutingRuleModel(_Strict):
    matcher: MatcherModel
    target_agent: str = Field(min_length=1)
    config_overrides: ConfigOverridesModel | None = None

    def to_rule(self) -> RoutingRule:
        return RoutingRule(
            matcher=self.matcher.to_matcher(),
            target_agent=self.target_agent,
            config_overrides=(
                self.config_overrides.to_overrides() if self.config_overrides else None
            ),
        )


class MetaAgentModel(_Strict):
    base_model: str = Field(min_length=1)
    routing_rules: list[RoutingRuleModel] = Field(min_length=1)
    delegates_to: list[str] = Field(default_factory=list)
    prompt_template: str | None = None
    temperature: float | None = None

    def to_definition(self) -> MetaAgentDefinition:
        return MetaAgentDefinition(
            base_model=self.base_model,
            routing_rules=tuple(rule.to_rule() for rule in self.routing_rules),
            delegates_to=tuple(self.delegates_to),
            prompt_template=self.prompt_template,
            temperature=self.temperature,
        )


# ═══════════════════════════════════════════════════════════════════════════
# SETTINGS & FILE
# ═══════════════════════════════════════════════════════════════════════════


class RoutingLoggerModel(_Strict):
    enabled: bool = True
    output: LogOutput = LogOutput.CONSOLE
    log_file: str = "routing.log"
    debug_mode: bool = False
    colored: bool = False


class SettingsModel(_Strict):
    namespace_prefix: str = "olimpus"
    max_delegation_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1)
    routing_logger: RoutingLoggerModel = Field(default_factory=RoutingLoggerModel)


class AnalyticsModel(_Strict):
    enabled: bool = True
    storage_file: str = "analytics.json"
    max_events: int = Field(default=10000, ge=0)
    retention_days: int = Field(default=90, ge=0)
    auto_prune: bool = True


class ConfigFileModel(BaseModel):
    """Top-level config file; sections the router does not own are ignored."""

    model_config = ConfigDict(extra="ignore")

    meta_agents: dict[str, MetaAgentModel] = Field(default_factory=dict)
    settings: SettingsModel = Field(default_factory=SettingsModel)
    analytics: AnalyticsModel = Field(default_factory=AnalyticsModel)


def format_validation_error(error: ValidationError, prefix: str = "") -> str:
    """Render each validation error as ``dotted.path[0].field: message``."""
    problems = []
    for detail in error.errors():
        path = prefix
        for part in detail["loc"]:
            if isinstance(part, int):
                path += f"[{part}]"
            else:
                path = f"{path}.{part}" if path else str(part)
        problems.append(f"{path or '<root>'}: {detail['msg']}")
    return "; ".join(problems)
