"""
Routing Resolver - first-match-wins over a meta-agent's routing rules.

The first rule whose matcher matches decides the delegate. Its config
overrides are merged onto the meta-agent's base configuration: override
fields win key by key, everything else is inherited. Inputs are never
mutated; the merge always builds a new ``AgentConfig``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from .matchers import evaluate, matched_content
from .models import (
    AgentConfig,
    ConfigOverrides,
    MatcherEvaluation,
    MetaAgentDefinition,
    ResolvedConfig,
    RoutingContext,
)


@dataclass(frozen=True)
class RouteResolution:
    """Resolved config (or None) plus the evaluations recorded on the way."""

    config: ResolvedConfig | None
    evaluations: tuple[MatcherEvaluation, ...] = field(default_factory=tuple)

    @property
    def matched(self) -> bool:
        return self.config is not None


def build_delegation_prompt(meta_agent_name: str, target_agent: str, original_prompt: str) -> str:
    """Prompt instructing a meta-agent to hand the request to its delegate."""
    return (
        f"You are {meta_agent_name}, a meta-agent coordinator.\n"
        "\n"
        "Your role is to analyze the user's request and delegate it to the "
        "appropriate specialized agent.\n"
        "\n"
        "Based on the user's request, this task should be handled by the "
        f'"{target_agent}" agent.\n'
        "\n"
        "**User Request:**\n"
        f"{original_prompt}\n"
        "\n"
        "**Your Task:**\n"
        "1. Understand the user's request above\n"
        f'2. Use the `task` tool to delegate this work to the "{target_agent}" agent\n'
        "3. Include the full user request in the task delegation\n"
        f"4. Return the result from the {target_agent} agent to the user"
    )


def base_config(
    definition: MetaAgentDefinition,
    target_agent: str,
    context: RoutingContext,
    meta_agent_name: str = "",
) -> AgentConfig:
    """Configuration a delegate inherits before any rule override applies."""
    prompt = definition.prompt_template
    if prompt is None:
        prompt = build_delegation_prompt(
            meta_agent_name or "meta-agent", target_agent, context.prompt
        )
    return AgentConfig(
        model=definition.base_model,
        prompt=prompt,
        temperature=definition.temperature,
    )


def merge_config(base: AgentConfig, overrides: ConfigOverrides | None) -> AgentConfig:
    """Merge overrides onto a base config, producing a new value."""
    if overrides is None:
        return replace(base)

    changes = {
        key: getattr(overrides, key)
        for key in ConfigOverrides.FIELDS
        if getattr(overrides, key) is not None
    }
    extra = {**base.extra, **overrides.extra}
    return replace(base, **changes, extra=extra)


def resolve_route(
    definition: MetaAgentDefinition,
    context: RoutingContext,
    *,
    trace: bool = False,
    meta_agent_name: str = "",
) -> RouteResolution:
    """Evaluate routing rules in order and resolve the first match.

    Args:
        definition: Meta-agent whose rules are evaluated
        context: Request being routed
        trace: Keep evaluating the remaining rules after the first match so
            the returned evaluations cover every rule. The decision is not
            affected.
        meta_agent_name: Name used when building the delegation prompt

    Returns:
        RouteResolution whose ``config`` is None when no rule matched
    """
    evaluations: list[MatcherEvaluation] = []
    resolved: ResolvedConfig | None = None

    for rule in definition.routing_rules:
        matched, reason = evaluate(rule.matcher, context)
        evaluations.append(MatcherEvaluation(rule.matcher.type, matched, reason))

        if matched and resolved is None:
            config = merge_config(
                base_config(definition, rule.target_agent, context, meta_agent_name),
                rule.config_overrides,
            )
            resolved = ResolvedConfig(
                target_agent=rule.target_agent,
                matcher_type=rule.matcher.type,
                matched_content=matched_content(rule.matcher, context),
                config=config,
                config_overrides=rule.config_overrides,
            )
            if not trace:
                break

    return RouteResolution(config=resolved, evaluations=tuple(evaluations))


def resolve(
    definition: MetaAgentDefinition,
    context: RoutingContext,
    *,
    meta_agent_name: str = "",
) -> ResolvedConfig | None:
    """Resolve a request to a delegate config, or None when no rule matches."""
    return resolve_route(definition, context, meta_agent_name=meta_agent_name).config
