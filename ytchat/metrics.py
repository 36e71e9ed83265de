"""Token usage tracking, per-turn timing, and model-name helpers.

``TokenTracker`` collects the ``usage`` blocks LiteLLM attaches to each
completion; ``track_step`` captures wall-clock time plus the token delta of
one block of work (a reply, a tool round, an image generation).
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Generator
from urllib.parse import urlparse


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class StepMetric:
    """Metrics for a single step of a chat turn."""

    name: str
    duration_s: float
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class TurnMetrics:
    """Aggregated metrics for one user message and its reply."""

    strategy: str = ""
    steps: list[StepMetric] = field(default_factory=list)

    @property
    def total_duration_s(self) -> float:
        return sum(s.duration_s for s in self.steps)

    @property
    def total_input_tokens(self) -> int:
        return sum(s.input_tokens for s in self.steps)

    @property
    def total_output_tokens(self) -> int:
        return sum(s.output_tokens for s in self.steps)

    @property
    def total_tokens(self) -> int:
        return self.total_input_tokens + self.total_output_tokens


# ---------------------------------------------------------------------------
# Token tracker
# ---------------------------------------------------------------------------


def _usage_dict(usage: Any) -> dict[str, int]:
    if usage is None:
        return {}
    if isinstance(usage, dict):
        raw = usage
    elif hasattr(usage, "model_dump"):
        raw = usage.model_dump()
    else:
        raw = {k: getattr(usage, k, 0) for k in ("prompt_tokens", "completion_tokens", "total_tokens")}
    return {k: int(raw.get(k) or 0) for k in ("prompt_tokens", "completion_tokens", "total_tokens")}


class TokenTracker:
    """Records ``prompt_tokens`` / ``completion_tokens`` per model call."""

    def __init__(self) -> None:
        self.calls: list[dict] = []

    def add_usage(self, model: str, usage: Any) -> None:
        entry = _usage_dict(usage)
        if entry:
            entry["model"] = model  # type: ignore[assignment]
            self.calls.append(entry)

    def reset(self) -> None:
        self.calls.clear()

    def snapshot(self) -> int:
        """Return an opaque marker for the current position."""
        return len(self.calls)

    def tokens_since(self, snap: int) -> tuple[int, int]:
        """Return ``(input_tokens, output_tokens)`` accumulated since *snap*."""
        recent = self.calls[snap:]
        inp = sum(c.get("prompt_tokens", 0) for c in recent)
        out = sum(c.get("completion_tokens", 0) for c in recent)
        return inp, out


_tracker: TokenTracker | None = None


def get_tracker() -> TokenTracker:
    """Return the active ``TokenTracker``, creating one if needed."""
    global _tracker
    if _tracker is None:
        _tracker = TokenTracker()
    return _tracker


def set_tracker(tracker: TokenTracker) -> None:
    """Install *tracker* as the module-level active tracker."""
    global _tracker
    _tracker = tracker


@contextmanager
def track_step(
    metrics: TurnMetrics,
    step_name: str,
    tracker: TokenTracker | None = None,
) -> Generator[None, None, None]:
    """Time a step and capture its token delta.

    The step is recorded even when the body raises, so failed turns still
    show how long they took.
    """
    if tracker is None:
        tracker = get_tracker()
    snap = tracker.snapshot()
    t0 = time.perf_counter()
    try:
        yield
    finally:
        duration = time.perf_counter() - t0
        inp, out = tracker.tokens_since(snap)
        metrics.steps.append(StepMetric(step_name, duration, inp, out))


# ---------------------------------------------------------------------------
# Model name helpers
# ---------------------------------------------------------------------------

_PROVIDER_PREFIXES = {
    "openai",
    "azure",
    "anthropic",
    "ollama",
    "gemini",
    "google",
    "vertex_ai",
    "bedrock",
    "mistral",
    "groq",
    "xai",
}


def normalize_local_api_base(value: str) -> str:
    """Point localhost API bases at IPv4 loopback."""
    return value.replace("://localhost", "://127.0.0.1").replace("://[::1]", "://127.0.0.1")


def normalize_model(model: str, api_base: str = "") -> str:
    """Force the ``openai/`` provider for bare model names on a local endpoint."""
    name = (model or "").strip()
    if not name:
        return name
    if "/" in name and name.split("/", 1)[0].lower() in _PROVIDER_PREFIXES:
        return name
    if not api_base:
        return name
    host = (urlparse(normalize_local_api_base(api_base)).hostname or "").lower()
    if host not in {"127.0.0.1", "localhost", "::1"}:
        return name
    return f"openai/{name}"


def is_gemini_model(model: str) -> bool:
    """True when LiteLLM will route *model* to Gemini."""
    provider = (model or "").split("/", 1)[0].lower() if "/" in (model or "") else ""
    return provider in {"gemini", "vertex_ai"} or (not provider and (model or "").lower().startswith("gemini"))
