"""
Analytics Exporter - recorded events in formats other tools consume.

JSON and CSV exports of the event log (or of its aggregation), filtered by
date range and target agent, plus the agent and matcher usage counters in
the Prometheus text exposition format.
"""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Iterable, Iterator, Sequence
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Any, Final

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily
from prometheus_client.registry import Collector

from olimpus_router.timestamps import utc_timestamp

from .aggregator import AggregationResult, AnalyticsAggregator, filter_events
from .events import AnalyticsEvent, RoutingDecisionEvent
from .storage import SNAPSHOT_VERSION, AnalyticsStorage, event_sort_key


class ExportFormat(StrEnum):
    JSON = "json"
    CSV = "csv"

    @classmethod
    def from_path(cls, path: Path | str) -> ExportFormat:
        """CSV for a ``.csv`` file, JSON for anything else."""
        return cls.CSV if Path(path).suffix.lower() == ".csv" else cls.JSON


EVENT_COLUMNS: Final = (
    "timestamp",
    "type",
    "target_agent",
    "matcher_type",
    "matched_content",
    "config_model",
    "config_temperature",
    "config_prompt",
    "config_variant",
    "user_request",
    "meta_agent",
)

AGGREGATE_COLUMNS: Final = ("kind", "name", "count", "last_used", "breakdown")

_OVERRIDE_COLUMNS: Final = ("model", "temperature", "prompt", "variant")


# ═══════════════════════════════════════════════════════════════════════════
# CSV
# ═══════════════════════════════════════════════════════════════════════════


def event_row(event: AnalyticsEvent) -> dict[str, Any]:
    """Flatten one event into the ``EVENT_COLUMNS`` layout; absent fields are blank."""
    row: dict[str, Any] = dict.fromkeys(EVENT_COLUMNS, "")
    row["timestamp"] = event.timestamp
    row["type"] = event.type
    row["meta_agent"] = event.meta_agent or ""

    if isinstance(event, RoutingDecisionEvent):
        row["target_agent"] = event.target_agent
        row["matcher_type"] = event.matcher_type
        row["matched_content"] = event.matched_content or ""
        overrides = event.config_overrides or {}
        for key in _OVERRIDE_COLUMNS:
            value = overrides.get(key)
            row[f"config_{key}"] = "" if value is None else value
    else:
        row["user_request"] = event.user_request
    return row


def events_to_csv(events: Iterable[AnalyticsEvent]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EVENT_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for event in events:
        writer.writerow(event_row(event))
    return buffer.getvalue()


def aggregation_to_csv(result: AggregationResult) -> str:
    """One row per agent, then one per matcher type, most used first.

    ``breakdown`` lists ``name=count`` pairs separated by ``;``: the routing
    meta-agents for an agent row, the target agents for a matcher row.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(AGGREGATE_COLUMNS)
    for name in result.top_agents:
        agent = result.agent_metrics[name]
        writer.writerow(
            ["agent", name, agent.total_requests, agent.last_used or "", _pairs(agent.meta_agents)]
        )
    for name in result.top_matchers:
        matcher = result.matcher_metrics[name]
        writer.writerow(
            ["matcher", name, matcher.matched_count, "", _pairs(matcher.target_agents)]
        )
    return buffer.getvalue()


def _pairs(counts: dict[str, int]) -> str:
    return ";".join(f"{key}={value}" for key, value in counts.items())


# ═══════════════════════════════════════════════════════════════════════════
# EXPORTER
# ═══════════════════════════════════════════════════════════════════════════


class AnalyticsExporter:
    """Exports the events of an AnalyticsStorage, optionally filtered."""

    def __init__(self, storage: AnalyticsStorage) -> None:
        self.storage = storage

    def select(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        agent_names: Sequence[str] | None = None,
    ) -> list[AnalyticsEvent]:
        """Matching events in timestamp order.

        The date range is inclusive. An agent filter keeps routing decisions
        only, since unmatched requests have no target agent.
        """
        events = filter_events(self.storage.get_all_events(), start, end, agent_names)
        return sorted(events, key=event_sort_key)

    def to_json_document(self, events: Sequence[AnalyticsEvent]) -> dict[str, Any]:
        result = AnalyticsAggregator(events).aggregate().to_dict()
        data: dict[str, Any] = {
            "version": SNAPSHOT_VERSION,
            "exported_at": utc_timestamp(),
            "total_events": len(events),
            "events": [event.to_dict() for event in events],
            "agent_metrics": result["agent_metrics"],
            "matcher_metrics": result["matcher_metrics"],
        }
        if events:
            data["first_event_timestamp"] = events[0].timestamp
            data["last_event_timestamp"] = events[-1].timestamp
        return data

    def export(
        self,
        fmt: ExportFormat | str = ExportFormat.JSON,
        start: datetime | None = None,
        end: datetime | None = None,
        agent_names: Sequence[str] | None = None,
        aggregate: bool = False,
    ) -> str:
        """Render the selected events, or their aggregation, as JSON or CSV text."""
        fmt = ExportFormat(fmt)
        events = self.select(start, end, agent_names)

        if aggregate:
            result = AnalyticsAggregator(events).aggregate()
            if fmt is ExportFormat.CSV:
                return aggregation_to_csv(result)
            return json.dumps(result.to_dict(), indent=2)

        if fmt is ExportFormat.CSV:
            return events_to_csv(events)
        return json.dumps(self.to_json_document(events), indent=2)


# ═══════════════════════════════════════════════════════════════════════════
# PROMETHEUS
# ═══════════════════════════════════════════════════════════════════════════


class UsageCollector(Collector):
    """Exposes an AggregationResult as Prometheus counters."""

    def __init__(self, result: AggregationResult, namespace: str = "olimpus") -> None:
        self.result = result
        self.namespace = namespace

    def collect(self) -> Iterator[CounterMetricFamily]:
        ns = self.namespace
        result = self.result

        events = CounterMetricFamily(
            f"{ns}_analytics_events", "Recorded analytics events by type", labels=["type"]
        )
        events.add_metric(["routing_decision"], result.routing_decisions)
        events.add_metric(["unmatched_request"], result.unmatched_requests)
        yield events

        agents = CounterMetricFamily(
            f"{ns}_agent_requests", "Requests routed to each delegate agent", labels=["agent"]
        )
        via = CounterMetricFamily(
            f"{ns}_agent_meta_agent_requests",
            "Requests routed to each delegate agent, by routing meta-agent",
            labels=["agent", "meta_agent"],
        )
        for name in result.top_agents:
            stats = result.agent_metrics[name]
            agents.add_metric([name], stats.total_requests)
            for meta_agent, count in stats.meta_agents.items():
                via.add_metric([name, meta_agent], count)
        yield agents
        yield via

        matchers = CounterMetricFamily(
            f"{ns}_matcher_matches",
            "Routing decisions made by each matcher type",
            labels=["matcher_type"],
        )
        targets = CounterMetricFamily(
            f"{ns}_matcher_target_matches",
            "Routing decisions made by each matcher type, by target agent",
            labels=["matcher_type", "target_agent"],
        )
        for name in result.top_matchers:
            stats = result.matcher_metrics[name]
            matchers.add_metric([name], stats.matched_count)
            for agent, count in stats.target_agents.items():
                targets.add_metric([name, agent], count)
        yield matchers
        yield targets


def render_prometheus(result: AggregationResult, namespace: str = "olimpus") -> bytes:
    """Usage counters in the Prometheus text exposition format."""
    registry = CollectorRegistry()
    registry.register(UsageCollector(result, namespace))
    return generate_latest(registry)
