# tests/test_control_plane.py
from __future__ import annotations

import pytest


def _ctx(**kwargs):
    from ytchat.chat.control_plane import RoutingContext

    return RoutingContext(**kwargs)


class TestClassify:
    def test_generate_image(self):
        from ytchat.chat.control_plane import Strategy, classify

        assert classify("generate an image of a cat") is Strategy.GENERATE_IMAGE
        assert classify("generateimage: a sunset") is Strategy.GENERATE_IMAGE

    def test_image_wins_over_channel_tools(self):
        from ytchat.chat.control_plane import Strategy, classify

        ctx = _ctx(has_channel_json=True)
        assert classify("generate an image of my views over time", ctx) is Strategy.GENERATE_IMAGE

    def test_metric_plot_with_channel(self):
        from ytchat.chat.control_plane import Strategy, classify

        assert classify("plot views vs time", _ctx(has_channel_json=True)) is Strategy.METRIC_PLOT
        assert classify("plot_metric_vs_time: likes", _ctx(has_channel_json=True)) is Strategy.METRIC_PLOT

    def test_metric_plot_needs_channel(self):
        from ytchat.chat.control_plane import Strategy, classify

        assert classify("plot views vs time") is Strategy.CODE_EXECUTION

    def test_stats_with_channel(self):
        from ytchat.chat.control_plane import Strategy, classify

        assert classify("average likes", _ctx(has_channel_json=True)) is Strategy.STATS
        assert classify("median comments please", _ctx(has_channel_json=True)) is Strategy.STATS

    def test_play_video_with_channel(self):
        from ytchat.chat.control_plane import Strategy, classify

        assert classify("play the most viewed video", _ctx(has_channel_json=True)) is Strategy.PLAY_VIDEO

    def test_stats_words_without_dataset_go_to_code(self):
        from ytchat.chat.control_plane import Strategy, classify

        assert classify("average likes") is Strategy.CODE_EXECUTION

    def test_python_only_keywords_win_with_rows(self):
        from ytchat.chat.control_plane import Strategy, classify

        ctx = _ctx(has_dataset_rows=True)
        assert classify("show a histogram of views", ctx) is Strategy.CODE_EXECUTION
        assert classify("fit a linear model", ctx) is Strategy.CODE_EXECUTION

    def test_client_tools_when_rows_loaded(self):
        from ytchat.chat.control_plane import Strategy, classify

        ctx = _ctx(has_dataset_rows=True)
        assert classify("which video has the best engagement?", ctx) is Strategy.CLIENT_TOOLS
        assert classify("what is the average view count", ctx) is Strategy.CLIENT_TOOLS

    def test_csv_attached_this_turn_is_plain(self):
        from ytchat.chat.control_plane import Strategy, classify

        ctx = _ctx(has_dataset_rows=True, csv_attached=True)
        assert classify("what do you make of this?", ctx) is Strategy.PLAIN

    def test_plain(self):
        from ytchat.chat.control_plane import Strategy, classify

        assert classify("hello there") is Strategy.PLAIN
        assert classify("") is Strategy.PLAIN

    def test_router_is_deterministic(self):
        from ytchat.chat.control_plane import IntentRouter

        router = IntentRouter()
        ctx = _ctx(has_dataset_rows=True)
        first = router.route("top 5 by likes", ctx)
        assert all(router.route("top 5 by likes", ctx) is first for _ in range(5))


class TestRoutingRules:
    def test_override_pattern(self):
        from ytchat.chat.control_plane import RoutingRules, Strategy, classify

        rules = RoutingRules.from_mapping({"generate_image": [r"\bdraw\b"]})
        assert classify("draw a cat", rules=rules) is Strategy.GENERATE_IMAGE
        assert classify("generate an image of a cat", rules=rules) is Strategy.PLAIN

    def test_single_string_pattern(self):
        from ytchat.chat.control_plane import RoutingRules

        rules = RoutingRules.from_mapping({"play_video": r"\bwatch\b"})
        assert rules.wants("play_video", "watch it")

    def test_unknown_rule(self):
        from ytchat.chat.control_plane import RoutingRules

        with pytest.raises(ValueError, match="Unknown routing rule"):
            RoutingRules.from_mapping({"telepathy": ["x"]})

    def test_invalid_regex(self):
        from ytchat.chat.control_plane import RoutingRules

        with pytest.raises(ValueError, match="Invalid pattern"):
            RoutingRules.from_mapping({"code": ["("]})

    def test_from_yaml(self, tmp_path):
        from ytchat.chat.control_plane import RoutingRules, Strategy, classify

        path = tmp_path / "rules.yaml"
        path.write_text("python_only:\n  - '\\bpivot\\b'\n", encoding="utf-8")
        rules = RoutingRules.from_yaml(path)
        ctx = _ctx(has_dataset_rows=True)
        assert classify("pivot the table", ctx, rules=rules) is Strategy.CODE_EXECUTION
        assert classify("show a histogram", ctx, rules=rules) is Strategy.CLIENT_TOOLS

    def test_from_yaml_requires_mapping(self, tmp_path):
        from ytchat.chat.control_plane import RoutingRules

        path = tmp_path / "rules.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            RoutingRules.from_yaml(path)
