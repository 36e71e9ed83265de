"""Tests for token tracking, step timing and model-name helpers."""
import pytest


class TestTokenTracker:
    def test_dict_usage(self):
        from ytchat.metrics import TokenTracker

        tracker = TokenTracker()
        tracker.add_usage("m", {"prompt_tokens": 5, "completion_tokens": 2})
        assert tracker.calls[0]["model"] == "m"
        assert tracker.tokens_since(0) == (5, 2)

    def test_object_usage(self):
        from types import SimpleNamespace

        from ytchat.metrics import TokenTracker

        tracker = TokenTracker()
        tracker.add_usage("m", SimpleNamespace(prompt_tokens=7, completion_tokens=None, total_tokens=7))
        assert tracker.tokens_since(0) == (7, 0)

    def test_pydantic_usage(self):
        from pydantic import BaseModel

        from ytchat.metrics import TokenTracker

        class Usage(BaseModel):
            prompt_tokens: int
            completion_tokens: int

        tracker = TokenTracker()
        tracker.add_usage("m", Usage(prompt_tokens=1, completion_tokens=4))
        assert tracker.tokens_since(0) == (1, 4)

    def test_snapshot_delta(self):
        from ytchat.metrics import TokenTracker

        tracker = TokenTracker()
        tracker.add_usage("m", {"prompt_tokens": 100, "completion_tokens": 100})
        snap = tracker.snapshot()
        tracker.add_usage("m", {"prompt_tokens": 3, "completion_tokens": 4})
        assert tracker.tokens_since(snap) == (3, 4)

    def test_none_usage_ignored(self):
        from ytchat.metrics import TokenTracker

        tracker = TokenTracker()
        tracker.add_usage("m", None)
        assert tracker.calls == []

    def test_reset(self):
        from ytchat.metrics import TokenTracker

        tracker = TokenTracker()
        tracker.add_usage("m", {"prompt_tokens": 1, "completion_tokens": 1})
        tracker.reset()
        assert tracker.snapshot() == 0

    def test_set_and_get_tracker(self):
        from ytchat.metrics import TokenTracker, get_tracker, set_tracker

        tracker = TokenTracker()
        set_tracker(tracker)
        assert get_tracker() is tracker


class TestTrackStep:
    def test_records_step_with_tokens(self):
        from ytchat.metrics import TokenTracker, TurnMetrics, track_step

        tracker = TokenTracker()
        metrics = TurnMetrics(strategy="plain")
        with track_step(metrics, "plain", tracker):
            tracker.add_usage("m", {"prompt_tokens": 10, "completion_tokens": 5})

        step = metrics.steps[0]
        assert step.name == "plain"
        assert step.total_tokens == 15
        assert step.duration_s >= 0
        assert metrics.total_tokens == 15

    def test_records_step_when_body_raises(self):
        from ytchat.metrics import TokenTracker, TurnMetrics, track_step

        metrics = TurnMetrics()
        with pytest.raises(ValueError):
            with track_step(metrics, "boom", TokenTracker()):
                raise ValueError("x")
        assert [s.name for s in metrics.steps] == ["boom"]


class TestModelNames:
    def test_normalize_local_api_base_localhost(self):
        from ytchat.metrics import normalize_local_api_base

        assert normalize_local_api_base("http://localhost:8000/v1") == "http://127.0.0.1:8000/v1"

    def test_normalize_local_api_base_ipv6_loopback(self):
        from ytchat.metrics import normalize_local_api_base

        assert normalize_local_api_base("http://[::1]:8000/v1") == "http://127.0.0.1:8000/v1"

    def test_normalize_local_api_base_keeps_remote_hosts(self):
        from ytchat.metrics import normalize_local_api_base

        assert normalize_local_api_base("https://api.example.com/v1") == "https://api.example.com/v1"

    def test_bare_model_on_local_base_gets_openai_prefix(self):
        from ytchat.metrics import normalize_model

        assert normalize_model("qwen2.5:7b", "http://127.0.0.1:11434/v1") == "openai/qwen2.5:7b"

    def test_known_provider_prefix_kept(self):
        from ytchat.metrics import normalize_model

        assert normalize_model("gemini/gemini-2.5-flash", "http://127.0.0.1:8000/v1") == "gemini/gemini-2.5-flash"

    def test_remote_base_unchanged(self):
        from ytchat.metrics import normalize_model

        assert normalize_model("my-model", "https://api.example.com/v1") == "my-model"

    @pytest.mark.parametrize(
        "model,expected",
        [
            ("gemini/gemini-2.5-flash", True),
            ("vertex_ai/gemini-pro", True),
            ("gemini-2.5-pro", True),
            ("openai/gpt-4o", False),
            ("", False),
        ],
    )
    def test_is_gemini_model(self, model, expected):
        from ytchat.metrics import is_gemini_model

        assert is_gemini_model(model) is expected
