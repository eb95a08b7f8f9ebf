"""
Analytics Storage - best-effort, self-pruning event log with JSON snapshots.

Events are kept in memory in arrival order and the full log is written to
``storage_file`` after every change. Nothing in here raises into the routing
path: read, write and parse failures are logged and swallowed.

Snapshot format::

    {
      "events": [...],            # ascending by timestamp
      "agent_metrics": {},
      "matcher_metrics": {},
      "total_events": 2,
      "first_event_timestamp": "...",
      "last_event_timestamp": "...",
      "version": "1.0.0"
    }
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from olimpus_router.timestamps import ensure_utc, parse_timestamp

from .events import (
    AnalyticsEvent,
    RoutingDecisionEvent,
    UnmatchedRequestEvent,
    event_from_dict,
)

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0.0"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class AnalyticsConfig:
    """Analytics storage settings."""

    enabled: bool = True
    storage_file: str = "analytics.json"
    max_events: int = 10000
    retention_days: int = 90
    auto_prune: bool = True

    def __post_init__(self) -> None:
        if self.max_events < 0:
            raise ValueError(f"max_events must be >= 0, got {self.max_events}")
        if self.retention_days < 0:
            raise ValueError(f"retention_days must be >= 0, got {self.retention_days}")


class AnalyticsStorage:
    """
    Persistent analytics event log.

    Features:
    - Retention pruning by age (``retention_days``) and count (``max_events``)
    - Full snapshot written on every change via temp file + rename
    - Corrupt or missing snapshots start an empty log
    - Disabled storage turns every operation into a no-op
    """

    def __init__(self, config: AnalyticsConfig | None = None) -> None:
        self.config = config or AnalyticsConfig()
        self.storage_path = Path(self.config.storage_file)
        self._events: list[AnalyticsEvent] = []
        self._load()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    # ───────────────────────────────────────────────────────────────────────
    # Writes
    # ───────────────────────────────────────────────────────────────────────

    def record_event(self, event: AnalyticsEvent) -> None:
        """Append an event, prune if configured, then persist."""
        if not self.enabled:
            return

        try:
            self._events.append(event)
            if self.config.auto_prune:
                self.prune()
            self._save()
        except Exception as e:
            logger.warning(f"[Analytics] Failed to record event: {e}")

    def prune(self, now: datetime | None = None) -> int:
        """Drop events past retention, then the oldest beyond ``max_events``.

        Assumes the log is in arrival (timestamp-ascending) order; the count
        cap trims from the front without re-sorting. Events whose timestamp
        cannot be parsed are treated as expired.

        Returns:
            Number of events removed
        """
        if not self.enabled or not self._events:
            return 0

        now = ensure_utc(now) if now else datetime.now(timezone.utc)
        cutoff = now - timedelta(days=self.config.retention_days)
        before = len(self._events)

        kept = []
        for event in self._events:
            timestamp = parse_timestamp(event.timestamp)
            if timestamp is not None and timestamp >= cutoff:
                kept.append(event)

        excess = len(kept) - self.config.max_events
        if excess > 0:
            del kept[:excess]

        self._events = kept
        return before - len(kept)

    def clear(self) -> None:
        """Remove every event and persist the empty snapshot."""
        if not self.enabled:
            return

        try:
            self._events = []
            self._save()
        except Exception as e:
            logger.warning(f"[Analytics] Failed to clear events: {e}")

    # ───────────────────────────────────────────────────────────────────────
    # Reads
    # ───────────────────────────────────────────────────────────────────────

    def get_all_events(self) -> list[AnalyticsEvent]:
        if not self.enabled:
            return []
        return list(self._events)

    def get_events_by_date_range(self, start: datetime, end: datetime) -> list[AnalyticsEvent]:
        """Events whose timestamp lies within ``[start, end]`` (inclusive)."""
        if not self.enabled:
            return []
        start, end = ensure_utc(start), ensure_utc(end)
        result = []
        for event in self._events:
            timestamp = parse_timestamp(event.timestamp)
            if timestamp is not None and start <= timestamp <= end:
                result.append(event)
        return result

    def get_events_by_agent(self, agent_name: str) -> list[RoutingDecisionEvent]:
        if not self.enabled:
            return []
        return [
            event
            for event in self._events
            if isinstance(event, RoutingDecisionEvent) and event.target_agent == agent_name
        ]

    def get_events_by_matcher_type(self, matcher_type: str) -> list[RoutingDecisionEvent]:
        if not self.enabled:
            return []
        return [
            event
            for event in self._events
            if isinstance(event, RoutingDecisionEvent) and event.matcher_type == matcher_type
        ]

    def get_unmatched_requests(self) -> list[UnmatchedRequestEvent]:
        if not self.enabled:
            return []
        return [event for event in self._events if isinstance(event, UnmatchedRequestEvent)]

    def get_event_count(self) -> int:
        if not self.enabled:
            return 0
        return len(self._events)

    def export_data(self) -> dict[str, Any]:
        """Snapshot of the log, sorted by timestamp; also the on-disk format."""
        events = sorted(self._events, key=event_sort_key)
        data: dict[str, Any] = {
            "events": [event.to_dict() for event in events],
            "agent_metrics": {},
            "matcher_metrics": {},
            "total_events": len(events),
        }
        if events:
            data["first_event_timestamp"] = events[0].timestamp
            data["last_event_timestamp"] = events[-1].timestamp
        data["version"] = SNAPSHOT_VERSION
        return data

    # ───────────────────────────────────────────────────────────────────────
    # Persistence
    # ───────────────────────────────────────────────────────────────────────

    def _load(self) -> None:
        if not self.enabled or not self.storage_path.exists():
            return

        try:
            with self.storage_path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            raw_events = data["events"]
            if not isinstance(raw_events, list):
                raise ValueError("'events' is not a list")
            self._events = [event_from_dict(item) for item in raw_events]
        except Exception as e:
            logger.warning(
                f"[Analytics] Ignoring unreadable snapshot {self.storage_path}: {e}"
            )
            self._events = []
            return

        if self.config.auto_prune:
            self.prune()

    def _save(self) -> None:
        data = self.export_data()
        try:
            directory = self.storage_path.parent
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.storage_path.name}.", suffix=".tmp", dir=directory
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_name, self.storage_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.warning(f"[Analytics] Failed to write {self.storage_path}: {e}")


def event_sort_key(event: AnalyticsEvent) -> datetime:
    return parse_timestamp(event.timestamp) or _EPOCH
