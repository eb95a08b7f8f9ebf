"""
Tests for the meta-agent registry.

Covers: registration, resolution scenarios, delegation graph, cycle
detection, multi-hop routing, logger and analytics wiring.
"""

import json

import pytest

from olimpus_router.analytics import (
    AnalyticsConfig,
    AnalyticsStorage,
    RoutingDecisionEvent,
    UnmatchedRequestEvent,
)
from olimpus_router.errors import CircularDelegationError, MetaAgentNotFoundError, RouterError
from olimpus_router.routing import (
    AlwaysMatcher,
    ConfigOverrides,
    DelegationEdge,
    DelegationGraph,
    KeywordMatcher,
    MetaAgentDefinition,
    MetaAgentRegistry,
    RoutingContext,
    RoutingLogger,
    RoutingLoggerConfig,
    RoutingRule,
)


def make_router() -> MetaAgentDefinition:
    return MetaAgentDefinition(
        base_model="claude-sonnet",
        delegates_to=["tester", "debugger", "generalist"],
        routing_rules=[
            RoutingRule(KeywordMatcher(keywords=["test", "spec"]), "tester"),
            RoutingRule(
                KeywordMatcher(keywords=["crash", "stack trace", "bug"]),
                "debugger",
                ConfigOverrides(temperature=0.1),
            ),
            RoutingRule(AlwaysMatcher(), "generalist"),
        ],
    )


def forward(target: str) -> MetaAgentDefinition:
    return MetaAgentDefinition(base_model="m", routing_rules=[RoutingRule(AlwaysMatcher(), target)])


@pytest.fixture
def registry() -> MetaAgentRegistry:
    reg = MetaAgentRegistry()
    reg.register("olimpus", make_router())
    return reg


# ═══════════════════════════════════════════════════════════════════════════
# REGISTRATION & RESOLUTION
# ═══════════════════════════════════════════════════════════════════════════


class TestRegistration:
    def test_get_and_contains(self, registry):
        assert "olimpus" in registry
        assert registry.get("olimpus") is not None
        assert registry.get("missing") is None
        assert list(registry.get_all()) == ["olimpus"]

    def test_register_replaces(self, registry):
        registry.register("olimpus", forward("other"))
        assert registry.resolve("olimpus", RoutingContext("test")).target_agent == "other"

    def test_unknown_meta_agent(self, registry):
        with pytest.raises(MetaAgentNotFoundError) as exc_info:
            registry.resolve("nope", RoutingContext("hi"))
        assert exc_info.value.name == "nope"
        assert str(exc_info.value) == 'Meta-agent "nope" not registered'
        assert isinstance(exc_info.value, KeyError)
        assert isinstance(exc_info.value, RouterError)

    def test_negative_depth_rejected(self):
        with pytest.raises(ValueError, match="max_depth"):
            MetaAgentRegistry(max_depth=-1)


class TestScenarios:
    def test_test_request_goes_to_tester(self, registry):
        resolved = registry.resolve("olimpus", RoutingContext("run the unit tests now"))
        assert resolved.target_agent == "tester"
        assert resolved.matcher_type == "keyword"

    def test_crash_request_goes_to_debugger(self, registry):
        resolved = registry.resolve("olimpus", RoutingContext("it crashed with a stack trace"))
        assert resolved.target_agent == "debugger"
        assert resolved.config.temperature == 0.1

    def test_plain_request_falls_back(self, registry):
        resolved = registry.resolve("olimpus", RoutingContext("hello there"))
        assert resolved.target_agent == "generalist"
        assert resolved.matcher_type == "always"

    def test_no_match_is_none(self):
        reg = MetaAgentRegistry()
        reg.register(
            "strict",
            MetaAgentDefinition(
                base_model="m", routing_rules=[RoutingRule(KeywordMatcher(keywords=["x"]), "y")]
            ),
        )
        assert reg.resolve("strict", RoutingContext("hello")) is None


# ═══════════════════════════════════════════════════════════════════════════
# DELEGATION GRAPH
# ═══════════════════════════════════════════════════════════════════════════


class TestDelegationGraph:
    def test_add_counts_occurrences(self):
        graph = DelegationGraph()
        assert graph.add("a", "b") == 1
        assert graph.add("a", "b") == 2
        assert graph.count("a", "b") == 2
        assert graph.count("b", "a") == 0
        assert len(graph) == 1

    def test_edges_and_neighbors(self):
        graph = DelegationGraph()
        graph.add("a", "b")
        graph.add("a", "c")
        graph.add("b", "c")
        assert graph.neighbors("a") == ["b", "c"]
        assert graph.neighbors("z") == []
        assert set(graph.edges()) == {
            DelegationEdge("a", "b"),
            DelegationEdge("a", "c"),
            DelegationEdge("b", "c"),
        }

    def test_has_path_respects_depth(self):
        graph = DelegationGraph()
        graph.add("a", "b")
        graph.add("b", "c")
        assert graph.has_path("a", "c", 3)
        assert not graph.has_path("a", "c", 2)

    def test_has_path_terminates_on_cycles(self):
        graph = DelegationGraph()
        graph.add("a", "b")
        graph.add("b", "a")
        assert not graph.has_path("a", "z", 100)

    def test_sibling_branches_explore_independently(self):
        graph = DelegationGraph()
        graph.add("a", "b")
        graph.add("a", "c")
        graph.add("b", "d")
        graph.add("c", "d")
        graph.add("d", "e")
        assert graph.has_path("a", "e", 4)

    def test_max_chain_depth(self):
        graph = DelegationGraph()
        assert graph.max_chain_depth() == 0
        graph.add("a", "b")
        graph.add("b", "c")
        graph.add("c", "a")
        graph.add("x", "y")
        assert graph.max_chain_depth() == 2


class TestCheckCircular:
    def test_self_delegation_is_circular(self, registry):
        assert registry.check_circular("a", "a", 1)

    def test_zero_depth_never_circular(self, registry):
        assert not registry.check_circular("a", "a", 0)
        assert not registry.check_circular("a", "b", 0)

    def test_reverse_edge_closes_cycle(self, registry):
        registry.track_delegation("a", "b")
        registry.track_delegation("b", "a")
        assert registry.check_circular("a", "b", 2)

    def test_back_edge_detected(self, registry):
        registry.track_delegation("a", "b")
        assert registry.check_circular("b", "a", 2)
        assert not registry.check_circular("b", "a", 1)

    def test_unrelated_agents(self, registry):
        registry.track_delegation("a", "b")
        assert not registry.check_circular("c", "d")

    def test_default_depth_from_registry(self):
        reg = MetaAgentRegistry(max_depth=2)
        reg.track_delegation("a", "b")
        reg.track_delegation("b", "c")
        assert not reg.check_circular("c", "a")
        assert reg.check_circular("c", "a", 3)

    def test_delegate_checks_then_tracks(self, registry):
        registry.delegate("a", "b")
        assert registry.graph.count("a", "b") == 1
        with pytest.raises(CircularDelegationError) as exc_info:
            registry.delegate("b", "a")
        assert exc_info.value.from_agent == "b"
        assert exc_info.value.to_agent == "a"
        assert registry.graph.count("b", "a") == 0


# ═══════════════════════════════════════════════════════════════════════════
# MULTI-HOP ROUTING
# ═══════════════════════════════════════════════════════════════════════════


class TestRoute:
    def test_single_hop(self, registry):
        chain = registry.route("olimpus", RoutingContext("hello there"))
        assert chain.path == ["olimpus", "generalist"]
        assert chain.final.target_agent == "generalist"
        assert len(registry.graph) == 0

    def test_nested_meta_agents(self):
        reg = MetaAgentRegistry()
        reg.register("olimpus", forward("builder"))
        reg.register("builder", forward("coder"))
        chain = reg.route("olimpus", RoutingContext("write code"))
        assert chain.path == ["olimpus", "builder", "coder"]
        assert [hop.meta_agent for hop in chain.hops] == ["olimpus", "builder"]
        assert reg.graph.count("olimpus", "builder") == 1

    def test_unmatched_chain(self):
        reg = MetaAgentRegistry()
        reg.register("olimpus", forward("strict"))
        reg.register(
            "strict",
            MetaAgentDefinition(
                base_model="m", routing_rules=[RoutingRule(KeywordMatcher(keywords=["x"]), "y")]
            ),
        )
        chain = reg.route("olimpus", RoutingContext("hello"))
        assert chain.final is None
        assert chain.unmatched_agent == "strict"
        assert chain.path == ["olimpus", "strict"]

    def test_cycle_rejected(self):
        reg = MetaAgentRegistry()
        reg.register("a", forward("b"))
        reg.register("b", forward("a"))
        with pytest.raises(CircularDelegationError) as exc_info:
            reg.route("a", RoutingContext("loop"))
        assert exc_info.value.from_agent == "b"
        assert exc_info.value.to_agent == "a"

    def test_depth_limit(self):
        reg = MetaAgentRegistry(max_depth=2)
        for index in range(1, 5):
            reg.register(f"m{index}", forward(f"m{index + 1}"))
        with pytest.raises(CircularDelegationError) as exc_info:
            reg.route("m1", RoutingContext("deep"))
        assert exc_info.value.max_depth == 2

    def test_unknown_start(self, registry):
        with pytest.raises(MetaAgentNotFoundError):
            registry.route("missing", RoutingContext("hi"))


# ═══════════════════════════════════════════════════════════════════════════
# LOGGER & ANALYTICS WIRING
# ═══════════════════════════════════════════════════════════════════════════


class TestWiring:
    def test_decisions_logged_with_debug_trace(self, tmp_path):
        log_file = tmp_path / "routing.log"
        logger = RoutingLogger(
            RoutingLoggerConfig(output="file", log_file=str(log_file), debug_mode=True)
        )
        reg = MetaAgentRegistry(logger=logger)
        reg.register("olimpus", make_router())

        reg.resolve("olimpus", RoutingContext("it crashed"))

        entry = json.loads(log_file.read_text().strip())
        assert entry["target_agent"] == "debugger"
        assert entry["config_overrides"] == {"temperature": 0.1}
        assert entry["debug_info"]["total_evaluated"] == 3
        assert [e["matched"] for e in entry["debug_info"]["all_evaluated"]] == [
            False,
            True,
            True,
        ]

    def test_analytics_records_decisions_and_misses(self, tmp_path):
        storage = AnalyticsStorage(AnalyticsConfig(storage_file=str(tmp_path / "a.json")))
        reg = MetaAgentRegistry(analytics=storage)
        reg.register("olimpus", make_router())
        reg.register(
            "strict",
            MetaAgentDefinition(
                base_model="m", routing_rules=[RoutingRule(KeywordMatcher(keywords=["x"]), "y")]
            ),
        )

        reg.resolve("olimpus", RoutingContext("run the tests"))
        reg.resolve("strict", RoutingContext("hello"))

        events = storage.get_all_events()
        assert isinstance(events[0], RoutingDecisionEvent)
        assert events[0].target_agent == "tester"
        assert events[0].meta_agent == "olimpus"
        assert isinstance(events[1], UnmatchedRequestEvent)
        assert events[1].user_request == "hello"
        assert events[1].meta_agent == "strict"
