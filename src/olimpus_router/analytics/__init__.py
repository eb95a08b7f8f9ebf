"""Routing analytics: event log storage, aggregation and export."""

from .aggregator import (
    AgentStatistics,
    AggregationResult,
    AnalyticsAggregator,
    MatcherStatistics,
    filter_events,
)
from .events import (
    AnalyticsEvent,
    RoutingDecisionEvent,
    UnmatchedRequestEvent,
    event_from_dict,
    fingerprint_request,
)
from .exporter import AnalyticsExporter, ExportFormat, render_prometheus
from .storage import SNAPSHOT_VERSION, AnalyticsConfig, AnalyticsStorage

__all__ = [
    "AgentStatistics",
    "AggregationResult",
    "AnalyticsAggregator",
    "AnalyticsConfig",
    "AnalyticsEvent",
    "AnalyticsExporter",
    "AnalyticsStorage",
    "ExportFormat",
    "MatcherStatistics",
    "RoutingDecisionEvent",
    "SNAPSHOT_VERSION",
    "UnmatchedRequestEvent",
    "event_from_dict",
    "filter_events",
    "fingerprint_request",
    "render_prometheus",
]
