"""Exception hierarchy for the router."""

from __future__ import annotations


class RouterError(Exception):
    """Base class for all router errors."""


class MetaAgentNotFoundError(RouterError, KeyError):
    """Raised when resolving a meta-agent name that was never registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f'Meta-agent "{self.name}" not registered'


class CircularDelegationError(RouterError):
    """Raised when a prospective delegation hop would close a cycle."""

    def __init__(self, from_agent: str, to_agent: str, max_depth: int) -> None:
        self.from_agent = from_agent
        self.to_agent = to_agent
        self.max_depth = max_depth
        super().__init__(
            f"Circular delegation detected: {from_agent} -> {to_agent} "
            f"(depth limit {max_depth})"
        )


class ConfigError(RouterError, ValueError):
    """Raised for invalid router configuration data."""
