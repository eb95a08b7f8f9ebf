"""Tests for analytics export: JSON, CSV and Prometheus text."""

import csv
import io
import json
from datetime import datetime, timezone

import pytest

from olimpus_router.analytics import (
    AnalyticsAggregator,
    AnalyticsConfig,
    AnalyticsExporter,
    AnalyticsStorage,
    ExportFormat,
    RoutingDecisionEvent,
    UnmatchedRequestEvent,
    render_prometheus,
)
from olimpus_router.analytics.exporter import AGGREGATE_COLUMNS, EVENT_COLUMNS


def rows(text: str) -> list[dict[str, str]]:
    return list(csv.DictReader(io.StringIO(text)))


@pytest.fixture
def storage(tmp_path) -> AnalyticsStorage:
    store = AnalyticsStorage(
        AnalyticsConfig(storage_file=str(tmp_path / "analytics.json"), auto_prune=False)
    )
    store.record_event(
        RoutingDecisionEvent(
            "tester",
            "keyword",
            timestamp="2026-03-01T10:00:00.000Z",
            matched_content='matched keywords: test, "unit"',
            config_overrides={"model": "big", "temperature": 0.2, "max_tokens": 10},
            meta_agent="olimpus",
        )
    )
    store.record_event(
        RoutingDecisionEvent(
            "tester", "keyword", timestamp="2026-03-02T10:00:00.000Z", meta_agent="olimpus"
        )
    )
    store.record_event(
        RoutingDecisionEvent(
            "tester", "regex", timestamp="2026-03-03T10:00:00.000Z", meta_agent="qa"
        )
    )
    store.record_event(
        RoutingDecisionEvent("debugger", "regex", timestamp="2026-03-04T10:00:00.000Z")
    )
    store.record_event(UnmatchedRequestEvent("hello, world", timestamp="2026-03-05T10:00:00.000Z"))
    return store


@pytest.fixture
def exporter(storage) -> AnalyticsExporter:
    return AnalyticsExporter(storage)


class TestExportFormat:
    @pytest.mark.parametrize(
        "path, expected",
        [
            ("out.csv", ExportFormat.CSV),
            ("OUT.CSV", ExportFormat.CSV),
            ("out.json", ExportFormat.JSON),
            ("out.txt", ExportFormat.JSON),
            ("out", ExportFormat.JSON),
        ],
    )
    def test_from_path(self, path, expected):
        assert ExportFormat.from_path(path) is expected


class TestSelect:
    def test_all_in_timestamp_order(self, tmp_path):
        store = AnalyticsStorage(
            AnalyticsConfig(storage_file=str(tmp_path / "a.json"), auto_prune=False)
        )
        store.record_event(RoutingDecisionEvent("late", "always", "2026-03-02T00:00:00Z"))
        store.record_event(RoutingDecisionEvent("early", "always", "2026-03-01T00:00:00Z"))

        selected = AnalyticsExporter(store).select()

        assert [e.target_agent for e in selected] == ["early", "late"]

    def test_date_range_inclusive(self, exporter):
        selected = exporter.select(
            start=datetime(2026, 3, 2, 10, tzinfo=timezone.utc),
            end=datetime(2026, 3, 4, 10, tzinfo=timezone.utc),
        )
        assert [e.timestamp[:10] for e in selected] == ["2026-03-02", "2026-03-03", "2026-03-04"]

    def test_naive_bounds_are_utc(self, exporter):
        selected = exporter.select(start=datetime(2026, 3, 5))
        assert [e.type for e in selected] == ["unmatched_request"]

    def test_agent_filter_drops_unmatched(self, exporter):
        selected = exporter.select(agent_names=["debugger"])
        assert len(selected) == 1
        assert selected[0].target_agent == "debugger"


class TestCsv:
    def test_event_columns(self, exporter):
        text = exporter.export(ExportFormat.CSV)
        assert text.splitlines()[0] == ",".join(EVENT_COLUMNS)

        parsed = rows(text)
        assert len(parsed) == 5
        first = parsed[0]
        assert first["type"] == "routing_decision"
        assert first["target_agent"] == "tester"
        assert first["matched_content"] == 'matched keywords: test, "unit"'
        assert first["config_model"] == "big"
        assert first["config_temperature"] == "0.2"
        assert first["config_prompt"] == ""
        assert first["meta_agent"] == "olimpus"

    def test_unmatched_row(self, exporter):
        last = rows(exporter.export("csv"))[-1]
        assert last["type"] == "unmatched_request"
        assert last["user_request"] == "hello, world"
        assert last["target_agent"] == ""
        assert last["matcher_type"] == ""

    def test_filtered(self, exporter):
        parsed = rows(exporter.export("csv", agent_names=["tester"]))
        assert {row["target_agent"] for row in parsed} == {"tester"}
        assert len(parsed) == 3

    def test_empty_store_has_header_only(self, tmp_path):
        store = AnalyticsStorage(AnalyticsConfig(storage_file=str(tmp_path / "a.json")))
        text = AnalyticsExporter(store).export("csv")
        assert text == ",".join(EVENT_COLUMNS) + "\n"

    def test_aggregation(self, exporter):
        text = exporter.export("csv", aggregate=True)
        assert text.splitlines()[0] == ",".join(AGGREGATE_COLUMNS)

        parsed = rows(text)
        assert [(row["kind"], row["name"], row["count"]) for row in parsed] == [
            ("agent", "tester", "3"),
            ("agent", "debugger", "1"),
            ("matcher", "keyword", "2"),
            ("matcher", "regex", "2"),
        ]
        assert parsed[0]["last_used"] == "2026-03-03T10:00:00.000Z"
        assert parsed[0]["breakdown"] == "olimpus=2;qa=1"
        assert parsed[3]["breakdown"] == "tester=1;debugger=1"


class TestJson:
    def test_document(self, exporter):
        data = json.loads(exporter.export())
        assert data["version"] == "1.0.0"
        assert data["total_events"] == 5
        assert data["first_event_timestamp"] == "2026-03-01T10:00:00.000Z"
        assert data["last_event_timestamp"] == "2026-03-05T10:00:00.000Z"
        assert data["agent_metrics"]["tester"]["total_requests"] == 3
        assert data["matcher_metrics"]["regex"]["matched_count"] == 2
        assert "exported_at" in data

    def test_date_filter(self, exporter):
        data = json.loads(exporter.export(end=datetime(2026, 3, 1, 23, tzinfo=timezone.utc)))
        assert data["total_events"] == 1
        assert list(data["agent_metrics"]) == ["tester"]

    def test_aggregation(self, exporter):
        data = json.loads(exporter.export("json", aggregate=True))
        assert data["top_agents"] == ["tester", "debugger"]
        assert data["unmatched_requests"] == 1


class TestPrometheus:
    def test_counters(self, storage):
        result = AnalyticsAggregator(storage.get_all_events()).aggregate()
        text = render_prometheus(result).decode("utf-8")

        assert "# TYPE olimpus_agent_requests_total counter" in text
        assert 'olimpus_agent_requests_total{agent="tester"} 3.0' in text
        assert 'olimpus_agent_requests_total{agent="debugger"} 1.0' in text
        assert (
            'olimpus_agent_meta_agent_requests_total{agent="tester",meta_agent="qa"} 1.0' in text
        )
        assert 'olimpus_matcher_matches_total{matcher_type="regex"} 2.0' in text
        assert (
            'olimpus_matcher_target_matches_total{matcher_type="regex",target_agent="debugger"} 1.0'
            in text
        )
        assert 'olimpus_analytics_events_total{type="unmatched_request"} 1.0' in text

    def test_label_values_escaped(self):
        result = AnalyticsAggregator([RoutingDecisionEvent('we"ird', "always")]).aggregate()
        text = render_prometheus(result).decode("utf-8")
        assert 'olimpus_agent_requests_total{agent="we\\"ird"} 1.0' in text

    def test_namespace(self):
        text = render_prometheus(AnalyticsAggregator().aggregate(), namespace="router")
        assert b'router_analytics_events_total{type="routing_decision"} 0.0' in text
