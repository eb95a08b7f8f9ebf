"""
Analytics Aggregator - usage statistics over recorded routing events.

Computes per-agent usage (requests, last use, which meta-agents routed
there) and per-matcher effectiveness (how often each matcher type decided a
route, and to whom), optionally filtered by date range, agent or matcher.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from olimpus_router.timestamps import ensure_utc, parse_timestamp

from .events import AnalyticsEvent, RoutingDecisionEvent, UnmatchedRequestEvent


@dataclass
class AgentStatistics:
    """Usage statistics for one delegate agent."""

    agent_name: str
    total_requests: int = 0
    last_used: str | None = None
    meta_agents: dict[str, int] = field(default_factory=dict)


@dataclass
class MatcherStatistics:
    """How often one matcher type decided a route."""

    matcher_type: str
    matched_count: int = 0
    target_agents: dict[str, int] = field(default_factory=dict)


@dataclass
class AggregationResult:
    """Summary of a set of analytics events."""

    total_events: int = 0
    routing_decisions: int = 0
    unmatched_requests: int = 0
    agent_metrics: dict[str, AgentStatistics] = field(default_factory=dict)
    matcher_metrics: dict[str, MatcherStatistics] = field(default_factory=dict)
    top_agents: list[str] = field(default_factory=list)
    top_matchers: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class AnalyticsAggregator:
    """Aggregates a fixed list of analytics events."""

    def __init__(self, events: Iterable[AnalyticsEvent] = ()) -> None:
        self.events: list[AnalyticsEvent] = list(events)

    def routing_decisions(self) -> list[RoutingDecisionEvent]:
        return [e for e in self.events if isinstance(e, RoutingDecisionEvent)]

    def unmatched_requests(self) -> list[UnmatchedRequestEvent]:
        return [e for e in self.events if isinstance(e, UnmatchedRequestEvent)]

    def aggregate(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        agent_names: Sequence[str] | None = None,
        matcher_types: Sequence[str] | None = None,
    ) -> AggregationResult:
        """Compute agent and matcher metrics for the selected events.

        Filtering by agent or matcher type keeps routing decisions only,
        since unmatched requests have neither.
        """
        events = filter_events(self.events, start, end, agent_names, matcher_types)
        decisions = [e for e in events if isinstance(e, RoutingDecisionEvent)]
        result = AggregationResult(
            total_events=len(events),
            routing_decisions=len(decisions),
            unmatched_requests=sum(1 for e in events if isinstance(e, UnmatchedRequestEvent)),
            agent_metrics=compute_agent_statistics(decisions),
            matcher_metrics=compute_matcher_statistics(decisions),
        )
        result.top_agents = sorted(
            result.agent_metrics, key=lambda name: -result.agent_metrics[name].total_requests
        )
        result.top_matchers = sorted(
            result.matcher_metrics, key=lambda name: -result.matcher_metrics[name].matched_count
        )
        return result


def filter_events(
    events: Iterable[AnalyticsEvent],
    start: datetime | None = None,
    end: datetime | None = None,
    agent_names: Sequence[str] | None = None,
    matcher_types: Sequence[str] | None = None,
) -> list[AnalyticsEvent]:
    """Events inside ``[start, end]`` that match the agent and matcher filters.

    An agent or matcher filter keeps routing decisions only.
    """
    selected = list(events)
    if start is not None or end is not None:
        selected = [e for e in selected if _within(e.timestamp, start, end)]
    if agent_names:
        wanted = set(agent_names)
        selected = [
            e for e in selected if isinstance(e, RoutingDecisionEvent) and e.target_agent in wanted
        ]
    if matcher_types:
        wanted = set(matcher_types)
        selected = [
            e for e in selected if isinstance(e, RoutingDecisionEvent) and e.matcher_type in wanted
        ]
    return selected


def compute_agent_statistics(events: Iterable[RoutingDecisionEvent]) -> dict[str, AgentStatistics]:
    stats: dict[str, AgentStatistics] = {}
    for event in events:
        agent = stats.setdefault(event.target_agent, AgentStatistics(event.target_agent))
        agent.total_requests += 1
        if event.meta_agent:
            agent.meta_agents[event.meta_agent] = agent.meta_agents.get(event.meta_agent, 0) + 1
        if agent.last_used is None or _later(event.timestamp, agent.last_used):
            agent.last_used = event.timestamp
    return stats


def compute_matcher_statistics(
    events: Iterable[RoutingDecisionEvent],
) -> dict[str, MatcherStatistics]:
    stats: dict[str, MatcherStatistics] = {}
    for event in events:
        matcher = stats.setdefault(event.matcher_type, MatcherStatistics(event.matcher_type))
        matcher.matched_count += 1
        matcher.target_agents[event.target_agent] = (
            matcher.target_agents.get(event.target_agent, 0) + 1
        )
    return stats


def _within(timestamp: str, start: datetime | None, end: datetime | None) -> bool:
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return False
    if start is not None and parsed < ensure_utc(start):
        return False
    if end is not None and parsed > ensure_utc(end):
        return False
    return True


def _later(candidate: str, current: str) -> bool:
    a, b = parse_timestamp(candidate), parse_timestamp(current)
    if a is None or b is None:
        return candidate > current
    return a > b
