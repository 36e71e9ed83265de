"""Intent routing for chat messages.

Maps raw user text plus what is currently loaded in the session to one reply
strategy. Routing is a fixed-order rule table: the first matching rule wins,
nothing is learned or scored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any


class Strategy(str, Enum):
    """Reply-generation path for a single message."""

    GENERATE_IMAGE = "generate_image"
    METRIC_PLOT = "metric_plot"
    STATS = "stats"
    PLAY_VIDEO = "play_video"
    CLIENT_TOOLS = "client_tools"
    CODE_EXECUTION = "code_execution"
    PLAIN = "plain"


@dataclass(slots=True, frozen=True)
class RoutingContext:
    """What the session has loaded when the message is sent."""

    has_channel_json: bool = False
    has_dataset_rows: bool = False
    csv_attached: bool = False


def _rx(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.I) for p in patterns)


@dataclass(slots=True)
class RoutingRules:
    """Keyword table behind the router. Every entry is a list of regexes; any match counts."""

    generate_image: tuple[re.Pattern[str], ...] = field(
        default_factory=lambda: _rx(
            r"\bgenerateimage\b",
            r"^\s*generateimage\s*:",
            r"\b(generate an image|make an image|create an image|image generation)\b",
        )
    )
    metric_plot: tuple[re.Pattern[str], ...] = field(
        default_factory=lambda: _rx(
            r"\bplot_metric_vs_time\b",
            r"\b(plot|graph)\b.*\b(views?|likes?|comments?)\b.*\b(time)\b",
        )
    )
    stats: tuple[re.Pattern[str], ...] = field(
        default_factory=lambda: _rx(
            r"\bcompute_stats_json\b",
            r"\b(stats?|statistics?|average|mean|median|distribution)\b.*\b(views?|likes?|comments?|duration)\b",
        )
    )
    play_video: tuple[re.Pattern[str], ...] = field(
        default_factory=lambda: _rx(
            r"\bplay_video\b",
            r"\b(play|open)\b.*\b(video)\b",
        )
    )
    # Requests only model-side Python can serve, whatever is loaded.
    python_only: tuple[re.Pattern[str], ...] = field(
        default_factory=lambda: _rx(
            r"\b(regression|scatter|histogram|seaborn|matplotlib|numpy|time.?series|heatmap|box.?plot"
            r"|violin|distribut\w*|linear.?model|logistic|forecast|trend.?line)\b",
        )
    )
    # Generic analysis vocabulary; routes to code execution only without local rows.
    code: tuple[re.Pattern[str], ...] = field(
        default_factory=lambda: _rx(
            r"\b(plot|chart|graph|analy[sz]\w*|statistics?|stats|regression|correlat\w*|histogram"
            r"|visuali[sz]\w*|calculat\w*|compute|run code|write code|execute|pandas|numpy|matplotlib"
            r"|csv|data|average|mean|median|std|standard deviation|sum|total)\b",
        )
    )

    @staticmethod
    def _matches(patterns: tuple[re.Pattern[str], ...], text: str) -> bool:
        return any(p.search(text) for p in patterns)

    def wants(self, rule: str, text: str) -> bool:
        return self._matches(getattr(self, rule), text or "")

    @classmethod
    def rule_names(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_mapping(cls, data: dict[str, Any], base: RoutingRules | None = None) -> RoutingRules:
        """Override entries of *base* (defaults if omitted) with raw pattern lists."""
        rules = base or cls()
        known = set(cls.rule_names())
        updates: dict[str, tuple[re.Pattern[str], ...]] = {}
        for name, patterns in (data or {}).items():
            if name not in known:
                raise ValueError(f"Unknown routing rule {name!r}. Known rules: {', '.join(sorted(known))}")
            if isinstance(patterns, str):
                patterns = [patterns]
            try:
                updates[name] = _rx(*[str(p) for p in patterns])
            except re.error as exc:
                raise ValueError(f"Invalid pattern in routing rule {name!r}: {exc}") from exc
        return replace(rules, **updates)

    @classmethod
    def from_yaml(cls, path: Path | str) -> RoutingRules:
        import yaml

        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Routing rules file {path} must contain a mapping of rule name to patterns.")
        return cls.from_mapping(data)


class IntentRouter:
    """Deterministic, ordered intent router."""

    def __init__(self, rules: RoutingRules | None = None) -> None:
        self.rules = rules or RoutingRules()

    def route(self, text: str, context: RoutingContext) -> Strategy:
        q = text or ""
        rules = self.rules

        if rules.wants("generate_image", q):
            return Strategy.GENERATE_IMAGE

        # Channel tools need a parsed channel export.
        if context.has_channel_json:
            if rules.wants("metric_plot", q):
                return Strategy.METRIC_PLOT
            if rules.wants("stats", q):
                return Strategy.STATS
            if rules.wants("play_video", q):
                return Strategy.PLAY_VIDEO

        python_only = rules.wants("python_only", q)
        wants_code = rules.wants("code", q) and not context.has_dataset_rows
        if python_only or wants_code:
            return Strategy.CODE_EXECUTION

        if context.has_dataset_rows and not context.csv_attached:
            return Strategy.CLIENT_TOOLS

        return Strategy.PLAIN


def classify(text: str, context: RoutingContext | None = None, rules: RoutingRules | None = None) -> Strategy:
    """Pure text + context → strategy function."""
    return IntentRouter(rules).route(text, context or RoutingContext())
