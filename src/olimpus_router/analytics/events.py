"""Analytics event types and their JSON wire form."""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

from olimpus_router.timestamps import utc_timestamp


@dataclass(frozen=True)
class RoutingDecisionEvent:
    """A request was routed to ``target_agent`` by a ``matcher_type`` rule."""

    type: ClassVar[str] = "routing_decision"

    target_agent: str
    matcher_type: str
    timestamp: str = field(default_factory=utc_timestamp)
    matched_content: str | None = None
    config_overrides: Mapping[str, Any] | None = None
    meta_agent: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "timestamp": self.timestamp,
            "target_agent": self.target_agent,
            "matcher_type": self.matcher_type,
        }
        if self.matched_content is not None:
            data["matched_content"] = self.matched_content
        if self.config_overrides is not None:
            data["config_overrides"] = dict(self.config_overrides)
        if self.meta_agent is not None:
            data["meta_agent"] = self.meta_agent
        return data


@dataclass(frozen=True)
class UnmatchedRequestEvent:
    """No routing rule matched a request."""

    type: ClassVar[str] = "unmatched_request"

    user_request: str
    timestamp: str = field(default_factory=utc_timestamp)
    fingerprint: str = ""
    meta_agent: str | None = None

    def __post_init__(self) -> None:
        if not self.fingerprint:
            object.__setattr__(self, "fingerprint", fingerprint_request(self.user_request))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "timestamp": self.timestamp,
            "user_request": self.user_request,
            "fingerprint": self.fingerprint,
        }
        if self.meta_agent is not None:
            data["meta_agent"] = self.meta_agent
        return data


AnalyticsEvent = Union[RoutingDecisionEvent, UnmatchedRequestEvent]


def fingerprint_request(text: str) -> str:
    """Stable short hash identifying a request without storing its meaning."""
    normalized = " ".join(text.lower().split())
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:16]


def event_from_dict(data: Mapping[str, Any]) -> AnalyticsEvent:
    """Build an event from its wire form.

    Raises:
        ValueError: if the type tag is unknown or required fields are missing
    """
    event_type = data.get("type")
    try:
        if event_type == RoutingDecisionEvent.type:
            return RoutingDecisionEvent(
                target_agent=str(data["target_agent"]),
                matcher_type=str(data["matcher_type"]),
                timestamp=str(data["timestamp"]),
                matched_content=data.get("matched_content"),
                config_overrides=data.get("config_overrides"),
                meta_agent=data.get("meta_agent"),
            )
        if event_type == UnmatchedRequestEvent.type:
            return UnmatchedRequestEvent(
                user_request=str(data["user_request"]),
                timestamp=str(data["timestamp"]),
                fingerprint=str(data.get("fingerprint") or ""),
                meta_agent=data.get("meta_agent"),
            )
    except KeyError as e:
        raise ValueError(f"{event_type} event missing field {e.args[0]!r}") from None
    raise ValueError(f"Unknown analytics event type: {event_type!r}")
