"""Routing Logger - structured records of every routing decision."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape

from olimpus_router.timestamps import utc_timestamp

from .models import ConfigOverrides, MatcherEvaluation

logger = logging.getLogger(__name__)


class LogOutput(StrEnum):
    """Where routing decisions are written."""

    CONSOLE = "console"
    FILE = "file"
    DISABLED = "disabled"


@dataclass(frozen=True)
class RoutingLoggerConfig:
    """Routing logger settings."""

    enabled: bool = True
    output: LogOutput = LogOutput.CONSOLE
    log_file: str = "routing.log"
    debug_mode: bool = False
    colored: bool = False

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "output", LogOutput(self.output))
        except ValueError:
            raise ValueError(
                f"output must be one of {[o.value for o in LogOutput]}, got {self.output!r}"
            ) from None


class RoutingLogger:
    """
    Logs routing decisions to the console, a file, or nowhere.

    Logging is strictly fire-and-forget: any failure while formatting or
    writing an entry is swallowed so it can never change a routing outcome.
    """

    def __init__(
        self, config: RoutingLoggerConfig | None = None, console: Console | None = None
    ) -> None:
        self.config = config or RoutingLoggerConfig()
        self.console = console or Console(soft_wrap=True)

    @property
    def enabled(self) -> bool:
        return self.config.enabled and self.config.output is not LogOutput.DISABLED

    @property
    def debug_mode(self) -> bool:
        return self.config.debug_mode

    def build_entry(
        self,
        target_agent: str,
        matcher_type: str,
        matched_content: str,
        config_overrides: ConfigOverrides | Mapping[str, Any] | None = None,
        all_evaluations: Sequence[MatcherEvaluation] | None = None,
    ) -> dict[str, Any]:
        """Assemble a log entry in its wire form."""
        entry: dict[str, Any] = {
            "timestamp": utc_timestamp(),
            "target_agent": target_agent,
            "matcher_type": matcher_type,
            "matched_content": matched_content,
        }
        if isinstance(config_overrides, ConfigOverrides):
            entry["config_overrides"] = config_overrides.to_dict()
        elif config_overrides is not None:
            entry["config_overrides"] = dict(config_overrides)

        if self.config.debug_mode and all_evaluations is not None:
            entry["debug_info"] = {
                "all_evaluated": [evaluation.to_dict() for evaluation in all_evaluations],
                "total_evaluated": len(all_evaluations),
            }
        return entry

    def log_routing_decision(
        self,
        target_agent: str,
        matcher_type: str,
        matched_content: str,
        config_overrides: ConfigOverrides | Mapping[str, Any] | None = None,
        all_evaluations: Sequence[MatcherEvaluation] | None = None,
    ) -> None:
        """Record one routing decision in the configured output."""
        if not self.enabled:
            return

        try:
            entry = self.build_entry(
                target_agent, matcher_type, matched_content, config_overrides, all_evaluations
            )
            if self.config.output is LogOutput.CONSOLE:
                self._write_console(entry)
            elif self.config.output is LogOutput.FILE:
                self._write_file(json.dumps(entry, default=str))
        except Exception as e:
            logger.debug(f"Routing log entry dropped: {e}")

    def _write_console(self, entry: dict[str, Any]) -> None:
        if not self.config.colored:
            self.console.out(json.dumps(entry, default=str), highlight=False)
            return

        line = (
            f"[dim]{entry['timestamp']}[/dim] "
            f"[bold cyan]{escape(entry['target_agent'])}[/bold cyan] "
            f"[yellow]{escape(entry['matcher_type'])}[/yellow] "
            f"{escape(entry['matched_content'])}"
        )
        overrides = entry.get("config_overrides")
        if overrides:
            line += f" [magenta]{escape(json.dumps(overrides, default=str))}[/magenta]"
        self.console.print(line)

        debug_info = entry.get("debug_info")
        if debug_info:
            for index, evaluation in enumerate(debug_info["all_evaluated"], start=1):
                mark = "[green]✓[/green]" if evaluation["matched"] else "[red]✗[/red]"
                self.console.print(f"  {index}. {mark} {escape(evaluation['matcher_type'])}")
            self.console.print(f"  [dim]{debug_info['total_evaluated']} rule(s) evaluated[/dim]")

    def _write_file(self, line: str) -> None:
        path = Path(self.config.log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")
