"""Router configuration loading and validation."""

from .loader import (
    RouterConfig,
    Settings,
    build_registry,
    deep_merge,
    load_config,
    parse_config,
    parse_matcher,
    parse_meta_agent,
    parse_rule,
    validate_config,
)

__all__ = [
    "RouterConfig",
    "Settings",
    "build_registry",
    "deep_merge",
    "load_config",
    "parse_config",
    "parse_matcher",
    "parse_meta_agent",
    "parse_rule",
    "validate_config",
]
