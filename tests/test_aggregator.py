"""Tests for analytics aggregation."""

from datetime import datetime, timezone

import pytest

from olimpus_router.analytics import (
    AnalyticsAggregator,
    RoutingDecisionEvent,
    UnmatchedRequestEvent,
)


@pytest.fixture
def aggregator() -> AnalyticsAggregator:
    return AnalyticsAggregator(
        [
            RoutingDecisionEvent(
                "tester", "keyword", timestamp="2026-03-01T10:00:00.000Z", meta_agent="olimpus"
            ),
            RoutingDecisionEvent(
                "tester", "keyword", timestamp="2026-03-02T10:00:00.000Z", meta_agent="olimpus"
            ),
            RoutingDecisionEvent(
                "tester", "regex", timestamp="2026-03-03T10:00:00.000Z", meta_agent="qa"
            ),
            RoutingDecisionEvent("debugger", "regex", timestamp="2026-03-04T10:00:00.000Z"),
            UnmatchedRequestEvent("hello", timestamp="2026-03-05T10:00:00.000Z"),
        ]
    )


class TestAggregate:
    def test_totals(self, aggregator):
        result = aggregator.aggregate()
        assert result.total_events == 5
        assert result.routing_decisions == 4
        assert result.unmatched_requests == 1

    def test_agent_statistics(self, aggregator):
        stats = aggregator.aggregate().agent_metrics["tester"]
        assert stats.total_requests == 3
        assert stats.last_used == "2026-03-03T10:00:00.000Z"
        assert stats.meta_agents == {"olimpus": 2, "qa": 1}

    def test_matcher_statistics(self, aggregator):
        stats = aggregator.aggregate().matcher_metrics["regex"]
        assert stats.matched_count == 2
        assert stats.target_agents == {"tester": 1, "debugger": 1}

    def test_top_lists_sorted_by_usage(self, aggregator):
        result = aggregator.aggregate()
        assert result.top_agents == ["tester", "debugger"]
        assert result.top_matchers == ["keyword", "regex"]

    def test_date_range(self, aggregator):
        result = aggregator.aggregate(
            start=datetime(2026, 3, 2, tzinfo=timezone.utc),
            end=datetime(2026, 3, 4, 10),
        )
        assert result.total_events == 3
        assert result.agent_metrics["tester"].total_requests == 2

    def test_filter_by_agent_drops_unmatched(self, aggregator):
        result = aggregator.aggregate(agent_names=["debugger"])
        assert result.total_events == 1
        assert result.unmatched_requests == 0
        assert list(result.agent_metrics) == ["debugger"]

    def test_filter_by_matcher(self, aggregator):
        result = aggregator.aggregate(matcher_types=["keyword"])
        assert result.routing_decisions == 2

    def test_to_dict(self, aggregator):
        data = aggregator.aggregate().to_dict()
        assert data["agent_metrics"]["tester"]["total_requests"] == 3
        assert data["matcher_metrics"]["keyword"]["target_agents"] == {"tester": 2}

    def test_empty(self):
        result = AnalyticsAggregator().aggregate()
        assert result.total_events == 0
        assert result.top_agents == []


class TestSplits:
    def test_event_kinds(self, aggregator):
        assert len(aggregator.routing_decisions()) == 4
        assert [e.user_request for e in aggregator.unmatched_requests()] == ["hello"]
