"""
Meta-Agent Routing - declarative rule matching with delegation safety.

Core Components:
- models: matchers, rules, meta-agent definitions, request contexts
- complexity: request complexity scoring for the complexity matcher
- matchers: pure evaluation of one matcher against one request
- resolver: first-match-wins resolution with config-override merging
- registry: definitions, delegation graph and cycle detection
- logger: structured routing decision log
"""

from .complexity import ComplexityResult, estimate_complexity
from .logger import LogOutput, RoutingLogger, RoutingLoggerConfig
from .matchers import MatchResult, evaluate, matched_content
from .models import (
    AgentConfig,
    AlwaysMatcher,
    ComplexityMatcher,
    ComplexityTier,
    ConfigOverrides,
    KeywordMatcher,
    Matcher,
    MatcherEvaluation,
    MatchMode,
    MetaAgentDefinition,
    ProjectContextMatcher,
    ProjectSnapshot,
    RegexMatcher,
    ResolvedConfig,
    RoutingContext,
    RoutingRule,
)
from .registry import (
    DEFAULT_MAX_DEPTH,
    DelegationChain,
    DelegationEdge,
    DelegationGraph,
    DelegationHop,
    MetaAgentRegistry,
)
from .resolver import RouteResolution, merge_config, resolve, resolve_route

__all__ = [
    # Models
    "AgentConfig",
    "AlwaysMatcher",
    "ComplexityMatcher",
    "ComplexityTier",
    "ConfigOverrides",
    "KeywordMatcher",
    "Matcher",
    "MatcherEvaluation",
    "MatchMode",
    "MetaAgentDefinition",
    "ProjectContextMatcher",
    "ProjectSnapshot",
    "RegexMatcher",
    "ResolvedConfig",
    "RoutingContext",
    "RoutingRule",
    # Complexity
    "ComplexityResult",
    "estimate_complexity",
    # Evaluator
    "MatchResult",
    "evaluate",
    "matched_content",
    # Resolver
    "RouteResolution",
    "merge_config",
    "resolve",
    "resolve_route",
    # Registry
    "DEFAULT_MAX_DEPTH",
    "DelegationChain",
    "DelegationEdge",
    "DelegationGraph",
    "DelegationHop",
    "MetaAgentRegistry",
    # Logger
    "LogOutput",
    "RoutingLogger",
    "RoutingLoggerConfig",
]
