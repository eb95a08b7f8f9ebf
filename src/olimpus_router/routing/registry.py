"""
Meta-Agent Registry - definitions, resolution and delegation safety.

The registry owns a ``DelegationGraph`` for its whole lifetime. Every hop of a
delegation chain is proven cycle-free with ``check_circular`` before it is
recorded with ``track_delegation``, so the graph never holds an edge whose
safety was not checked at insertion time.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterator
from dataclasses import dataclass, field

from olimpus_router.analytics.events import RoutingDecisionEvent, UnmatchedRequestEvent
from olimpus_router.analytics.storage import AnalyticsStorage
from olimpus_router.errors import CircularDelegationError, MetaAgentNotFoundError

from .logger import RoutingLogger
from .models import MetaAgentDefinition, ResolvedConfig, RoutingContext
from .resolver import resolve_route

DEFAULT_MAX_DEPTH = 3


@dataclass(frozen=True)
class DelegationEdge:
    """A recorded fact: ``from_agent`` routed to ``to_agent`` ``count`` times."""

    from_agent: str
    to_agent: str
    count: int = 1


class DelegationGraph:
    """Append-only multigraph of delegation edges.

    Stored as an adjacency mapping ``agent -> {next_agent: occurrences}``.
    Edges are never removed.
    """

    def __init__(self) -> None:
        self._adjacency: dict[str, dict[str, int]] = defaultdict(dict)

    def add(self, from_agent: str, to_agent: str) -> int:
        """Record one occurrence of an edge and return its new count."""
        targets = self._adjacency[from_agent]
        targets[to_agent] = targets.get(to_agent, 0) + 1
        return targets[to_agent]

    def count(self, from_agent: str, to_agent: str) -> int:
        return self._adjacency.get(from_agent, {}).get(to_agent, 0)

    def neighbors(self, agent: str) -> list[str]:
        return list(self._adjacency.get(agent, {}))

    def edges(self) -> Iterator[DelegationEdge]:
        for from_agent, targets in self._adjacency.items():
            for to_agent, count in targets.items():
                yield DelegationEdge(from_agent, to_agent, count)

    def __len__(self) -> int:
        return sum(len(targets) for targets in self._adjacency.values())

    def has_path(self, start: str, goal: str, max_depth: int) -> bool:
        """True if ``goal`` is reachable from ``start`` within ``max_depth`` steps.

        ``start == goal`` counts as reachable when ``max_depth`` is at least one.
        Each branch carries its own copy of the visited set, so sibling
        branches explore independently and nothing has to be un-visited.
        """
        return self._walk(start, goal, max_depth, frozenset())

    def _walk(self, current: str, goal: str, depth: int, visited: frozenset[str]) -> bool:
        if depth <= 0:
            return False
        if current == goal:
            return True
        if current in visited:
            return False

        branch_visited = visited | {current}
        for next_agent in self.neighbors(current):
            if self._walk(next_agent, goal, depth - 1, branch_visited):
                return True
        return False

    def max_chain_depth(self) -> int:
        """Length of the longest simple chain of tracked edges."""
        longest = 0
        for start in list(self._adjacency):
            longest = max(longest, self._longest_from(start, frozenset({start})))
        return longest

    def _longest_from(self, agent: str, visited: frozenset[str]) -> int:
        longest = 0
        for next_agent in self.neighbors(agent):
            if next_agent in visited:
                continue
            longest = max(longest, 1 + self._longest_from(next_agent, visited | {next_agent}))
        return longest


@dataclass(frozen=True)
class DelegationHop:
    """One resolved step of a delegation chain."""

    meta_agent: str
    resolved: ResolvedConfig


@dataclass
class DelegationChain:
    """Every hop taken while routing one request, in order."""

    hops: list[DelegationHop] = field(default_factory=list)
    unmatched_agent: str | None = None

    @property
    def final(self) -> ResolvedConfig | None:
        """Config of the terminal delegate, or None if the chain ended unmatched."""
        if self.unmatched_agent is not None or not self.hops:
            return None
        return self.hops[-1].resolved

    @property
    def path(self) -> list[str]:
        agents = [hop.meta_agent for hop in self.hops]
        if self.unmatched_agent is not None:
            agents.append(self.unmatched_agent)
        elif self.hops:
            agents.append(self.hops[-1].resolved.target_agent)
        return agents


class MetaAgentRegistry:
    """
    Registry for meta-agents with delegation tracking and cycle detection.

    Registration is single-writer and not synchronized. Resolution, logging
    and analytics run synchronously in the caller's thread.
    """

    def __init__(
        self,
        max_depth: int = DEFAULT_MAX_DEPTH,
        logger: RoutingLogger | None = None,
        analytics: AnalyticsStorage | None = None,
    ) -> None:
        if max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {max_depth}")
        self.max_depth = max_depth
        self.logger = logger
        self.analytics = analytics
        self.graph = DelegationGraph()
        self._definitions: dict[str, MetaAgentDefinition] = {}

    # ───────────────────────────────────────────────────────────────────────
    # Definitions
    # ───────────────────────────────────────────────────────────────────────

    def register(self, name: str, definition: MetaAgentDefinition) -> None:
        """Store a definition, replacing any previous one with the same name."""
        self._definitions[name] = definition

    def get(self, name: str) -> MetaAgentDefinition | None:
        return self._definitions.get(name)

    def get_all(self) -> dict[str, MetaAgentDefinition]:
        return dict(self._definitions)

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    # ───────────────────────────────────────────────────────────────────────
    # Resolution
    # ───────────────────────────────────────────────────────────────────────

    def resolve(self, name: str, context: RoutingContext) -> ResolvedConfig | None:
        """Resolve a meta-agent for one request.

        Returns:
            The resolver's result verbatim: a ResolvedConfig, or None when no
            rule matched. No fallback is applied here.

        Raises:
            MetaAgentNotFoundError: if ``name`` is not registered
        """
        definition = self._definitions.get(name)
        if definition is None:
            raise MetaAgentNotFoundError(name)

        trace = self.logger is not None and self.logger.enabled and self.logger.debug_mode
        resolution = resolve_route(definition, context, trace=trace, meta_agent_name=name)
        resolved = resolution.config

        if resolved is not None and self.logger is not None:
            self.logger.log_routing_decision(
                resolved.target_agent,
                resolved.matcher_type,
                resolved.matched_content,
                resolved.config_overrides,
                resolution.evaluations if trace else None,
            )

        if self.analytics is not None:
            if resolved is not None:
                overrides = resolved.config_overrides
                self.analytics.record_event(
                    RoutingDecisionEvent(
                        target_agent=resolved.target_agent,
                        matcher_type=resolved.matcher_type,
                        matched_content=resolved.matched_content,
                        config_overrides=overrides.to_dict() if overrides else None,
                        meta_agent=name,
                    )
                )
            else:
                self.analytics.record_event(
                    UnmatchedRequestEvent(user_request=context.prompt, meta_agent=name)
                )

        return resolved

    # ───────────────────────────────────────────────────────────────────────
    # Delegation tracking
    # ───────────────────────────────────────────────────────────────────────

    def track_delegation(self, from_agent: str, to_agent: str) -> None:
        """Record that ``from_agent`` delegated to ``to_agent``.

        ``to_agent`` need not be registered: chains may end at a worker agent.
        """
        self.graph.add(from_agent, to_agent)

    def check_circular(self, from_agent: str, to_agent: str, max_depth: int | None = None) -> bool:
        """Would delegating ``from_agent -> to_agent`` close a cycle?

        True if the agents are the same, or if ``from_agent`` is reachable
        from ``to_agent`` over tracked edges within ``max_depth`` hops.
        """
        depth = self.max_depth if max_depth is None else max_depth
        return self.graph.has_path(to_agent, from_agent, depth)

    def delegate(self, from_agent: str, to_agent: str, max_depth: int | None = None) -> None:
        """Check a hop and record it; the order of the two steps is fixed.

        Raises:
            CircularDelegationError: if the hop would close a cycle
        """
        depth = self.max_depth if max_depth is None else max_depth
        if self.check_circular(from_agent, to_agent, depth):
            raise CircularDelegationError(from_agent, to_agent, depth)
        self.track_delegation(from_agent, to_agent)

    def route(self, name: str, context: RoutingContext) -> DelegationChain:
        """Route a request through meta-agents until it reaches a worker.

        Idle -> resolve -> Matched | Unmatched. A match whose target is
        itself a registered meta-agent is cycle-checked, tracked, and
        resolved in turn; anything else is terminal. A chain longer than
        ``max_depth`` hops is rejected like a cycle.

        Raises:
            MetaAgentNotFoundError: if ``name`` is not registered
            CircularDelegationError: if a hop would loop or exceed the depth limit
        """
        chain = DelegationChain()
        current = name

        while True:
            resolved = self.resolve(current, context)
            if resolved is None:
                chain.unmatched_agent = current
                return chain

            chain.hops.append(DelegationHop(current, resolved))
            target = resolved.target_agent
            if target not in self._definitions:
                return chain

            if len(chain.hops) > self.max_depth:
                raise CircularDelegationError(current, target, self.max_depth)
            self.delegate(current, target)
            current = target
