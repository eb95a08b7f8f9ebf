"""
Configuration loading for the router.

Reads ``olimpus.toml`` (or ``olimpus.json``) from the user config directory
and the project directory, deep-merges the project file over the user file,
and validates the result against the pydantic schema in ``schema`` before
converting it into typed definitions. Parse errors carry the dotted
path of the offending value.
"""

from __future__ import annotations

import json
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from olimpus_router.analytics.storage import AnalyticsConfig, AnalyticsStorage
from olimpus_router.errors import ConfigError
from olimpus_router.routing.logger import RoutingLogger, RoutingLoggerConfig
from olimpus_router.routing.models import Matcher, MetaAgentDefinition, RoutingRule
from olimpus_router.routing.registry import DEFAULT_MAX_DEPTH, DelegationGraph, MetaAgentRegistry

from olimpus_router.config.schema import (
    ConfigFileModel,
    MatcherModel,
    MetaAgentModel,
    RoutingRuleModel,
    format_validation_error,
)

CONFIG_NAMES = ("olimpus.toml", "olimpus.json")
USER_CONFIG_DIR = Path.home() / ".config" / "olimpus"

_M = TypeVar("_M")


@dataclass(frozen=True)
class Settings:
    """Global router settings."""

    namespace_prefix: str = "olimpus"
    max_delegation_depth: int = DEFAULT_MAX_DEPTH
    routing_logger: RoutingLoggerConfig = field(default_factory=RoutingLoggerConfig)

    def __post_init__(self) -> None:
        if self.max_delegation_depth < 1:
            raise ValueError(
                f"max_delegation_depth must be >= 1, got {self.max_delegation_depth}"
            )


@dataclass(frozen=True)
class RouterConfig:
    """Fully parsed router configuration."""

    meta_agents: dict[str, MetaAgentDefinition] = field(default_factory=dict)
    settings: Settings = field(default_factory=Settings)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)


# ═══════════════════════════════════════════════════════════════════════════
# PARSING
# ═══════════════════════════════════════════════════════════════════════════

_MATCHER_ADAPTER: TypeAdapter[Any] = TypeAdapter(MatcherModel)


def _validate(validator: Callable[[Any], _M], data: Any, path: str) -> _M:
    try:
        return validator(data)
    except ValidationError as e:
        raise ConfigError(format_validation_error(e, path)) from e


def parse_matcher(data: Any, path: str = "matcher") -> Matcher:
    """Parse a matcher from its ``{"type": ..., ...}`` form."""
    return _validate(_MATCHER_ADAPTER.validate_python, data, path).to_matcher()


def parse_rule(data: Any, path: str = "rule") -> RoutingRule:
    return _validate(RoutingRuleModel.model_validate, data, path).to_rule()


def parse_meta_agent(data: Any, path: str = "meta_agent") -> MetaAgentDefinition:
    return _validate(MetaAgentModel.model_validate, data, path).to_definition()


def parse_config(data: Mapping[str, Any]) -> RouterConfig:
    """Parse raw configuration data into a RouterConfig."""
    parsed = _validate(ConfigFileModel.model_validate, data, "")
    return RouterConfig(
        meta_agents={
            name: definition.to_definition() for name, definition in parsed.meta_agents.items()
        },
        settings=Settings(
            namespace_prefix=parsed.settings.namespace_prefix,
            max_delegation_depth=parsed.settings.max_delegation_depth,
            routing_logger=RoutingLoggerConfig(**parsed.settings.routing_logger.model_dump()),
        ),
        analytics=AnalyticsConfig(**parsed.analytics.model_dump()),
    )


# ═══════════════════════════════════════════════════════════════════════════
# LOADING
# ═══════════════════════════════════════════════════════════════════════════


def read_config_file(path: Path) -> dict[str, Any]:
    """Read a TOML or JSON config file into a dict."""
    try:
        if path.suffix == ".json":
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        else:
            with path.open("rb") as f:
                data = tomllib.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"{path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a table at the top level, got {type(data).__name__}")
    return data


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into ``base`` recursively; override wins on conflicts."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def find_config_file(directory: Path) -> Path | None:
    for name in CONFIG_NAMES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def load_config(
    path: Path | str | None = None,
    project_dir: Path | str | None = None,
    user_config_dir: Path | str | None = None,
) -> RouterConfig:
    """Load the router configuration.

    Args:
        path: Explicit config file; when given, nothing else is read
        project_dir: Directory searched for a project config (default: cwd)
        user_config_dir: Directory searched for a user config
            (default: ~/.config/olimpus)

    Returns:
        Parsed configuration; an empty default config if no file exists
    """
    if path is not None:
        return parse_config(read_config_file(Path(path)))

    data: dict[str, Any] = {}
    for directory in (
        Path(user_config_dir) if user_config_dir is not None else USER_CONFIG_DIR,
        Path(project_dir) if project_dir is not None else Path.cwd(),
    ):
        found = find_config_file(directory)
        if found is not None:
            data = deep_merge(data, read_config_file(found))
    return parse_config(data)


# ═══════════════════════════════════════════════════════════════════════════
# VALIDATION & WIRING
# ═══════════════════════════════════════════════════════════════════════════


def validate_config(config: RouterConfig) -> list[str]:
    """Semantic checks the parser cannot express.

    Reports rule targets missing from ``delegates_to`` and meta-agents whose
    static delegation graph loops back on itself.
    """
    problems: list[str] = []
    graph = DelegationGraph()

    for name, definition in config.meta_agents.items():
        for index, rule in enumerate(definition.routing_rules):
            if definition.delegates_to and rule.target_agent not in definition.delegates_to:
                problems.append(
                    f"meta_agents.{name}.routing_rules[{index}]: target "
                    f"{rule.target_agent!r} is not listed in delegates_to"
                )
            if rule.target_agent in config.meta_agents:
                graph.add(name, rule.target_agent)

    for name in config.meta_agents:
        for target in graph.neighbors(name):
            if graph.has_path(target, name, len(config.meta_agents) + 1):
                problems.append(f"meta_agents.{name}: circular delegation via {target!r}")
    return problems


def build_registry(config: RouterConfig) -> MetaAgentRegistry:
    """Registry wired with the configured logger and analytics store."""
    registry = MetaAgentRegistry(
        max_depth=config.settings.max_delegation_depth,
        logger=RoutingLogger(config.settings.routing_logger),
        analytics=AnalyticsStorage(config.analytics) if config.analytics.enabled else None,
    )
    for name, definition in config.meta_agents.items():
        registry.register(name, definition)
    return registry
