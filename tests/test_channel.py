# tests/test_channel.py
from __future__ import annotations

import pytest


def _channel() -> dict:
    return {
        "channel": {"title": "Science Shorts", "handle": "@shorts"},
        "videos": [
            {
                "video_id": "a1",
                "title": "First upload",
                "published_at": "2024-03-01T10:00:00Z",
                "view_count": 100,
                "like_count": 10,
                "comment_count": 1,
            },
            {
                "video_id": "b2",
                "title": "Second upload",
                "published_at": "2024-01-15T10:00:00Z",
                "view_count": 500,
                "like_count": 50,
                "comment_count": 5,
            },
            {
                "video_id": "c3",
                "title": "Third upload",
                "published_at": "2024-02-10T10:00:00Z",
                "view_count": 300,
                "like_count": 20,
                "comment_count": 2,
            },
        ],
    }


class TestPlotMetricVsTime:
    def test_sorted_by_date(self):
        from ytchat.chat.channel import plot_metric_vs_time

        chart = plot_metric_vs_time(_channel(), "view_count")
        assert chart["chart_type"] == "metric_vs_time"
        assert chart["metric"] == "view_count"
        assert [p["date"] for p in chart["data"]] == ["2024-01-15", "2024-02-10", "2024-03-01"]
        assert [p["value"] for p in chart["data"]] == [500, 300, 100]

    def test_youtube_api_items_format(self):
        from ytchat.chat.channel import plot_metric_vs_time

        data = {
            "items": [
                {
                    "id": "x",
                    "snippet": {"title": "API video", "publishedAt": "2023-05-01T00:00:00Z"},
                    "statistics": {"viewCount": "42", "likeCount": "7"},
                }
            ]
        }
        assert plot_metric_vs_time(data, "view_count")["data"][0]["value"] == 42.0
        assert plot_metric_vs_time(data, "like_count")["data"][0]["value"] == 7.0

    def test_no_videos(self):
        from ytchat.chat.channel import NO_VIDEOS_ERROR, plot_metric_vs_time

        assert plot_metric_vs_time({}, "view_count") == {"error": NO_VIDEOS_ERROR}
        assert plot_metric_vs_time(None, "view_count") == {"error": NO_VIDEOS_ERROR}

    def test_metric_without_values(self):
        from ytchat.chat.channel import plot_metric_vs_time

        assert "error" in plot_metric_vs_time(_channel(), "duration")


class TestPlayVideo:
    def test_most_viewed(self):
        from ytchat.chat.channel import play_video

        info = play_video(_channel(), "play the most viewed video")
        assert info["title"] == "Second upload"
        assert info["url"] == "https://www.youtube.com/watch?v=b2"

    def test_least_viewed(self):
        from ytchat.chat.channel import play_video

        assert play_video(_channel(), "least viewed")["video_id"] == "a1"

    def test_title_fragment(self):
        from ytchat.chat.channel import play_video

        assert play_video(_channel(), "third")["video_id"] == "c3"

    def test_falls_back_to_first(self):
        from ytchat.chat.channel import play_video

        assert play_video(_channel(), "something else")["video_id"] == "a1"

    def test_no_videos(self):
        from ytchat.chat.channel import play_video

        assert "error" in play_video({"videos": []}, "")

    def test_numeric_id_becomes_string(self):
        from ytchat.chat.channel import play_video
        from ytchat.chat.messages import VideoCard

        info = play_video({"videos": [{"id": 123, "title": "Hi", "view_count": 5}]}, "")
        assert info["video_id"] == "123"
        assert info["url"] == "https://www.youtube.com/watch?v=123"
        assert VideoCard(**info).video_id == "123"

    def test_malformed_nested_fields(self):
        from ytchat.chat.channel import play_video

        video = {"id": "x1", "snippet": "oops", "statistics": [1, 2], "contentDetails": None}
        info = play_video({"videos": [video]}, "")
        assert info["video_id"] == "x1"
        assert info["title"] == ""
        assert info["thumbnail_url"] == ""


class TestComputeStatsJson:
    def test_like_stats(self):
        from ytchat.chat.channel import compute_stats_json

        stats = compute_stats_json(_channel(), "like_count")
        assert stats["field"] == "like_count"
        assert stats["count"] == 3
        assert stats["mean"] == pytest.approx(80 / 3)
        assert stats["median"] == 20
        assert stats["min"] == 10
        assert stats["max"] == 50

    def test_missing_field(self):
        from ytchat.chat.channel import compute_stats_json

        assert "No numeric values" in compute_stats_json(_channel(), "duration")["error"]

    def test_format_answer(self):
        from ytchat.chat.channel import compute_stats_json, format_stats_answer

        text = format_stats_answer(compute_stats_json(_channel(), "view_count"))
        assert text.startswith("Stats for view_count (n=3): mean=300.00, median=300.00")
        assert text.endswith("min=100, max=500.")

    def test_format_error(self):
        from ytchat.chat.channel import format_stats_answer

        assert format_stats_answer({"error": "boom"}) == "boom"


class TestResolveMetricKey:
    @pytest.mark.parametrize(
        "text,expected",
        [("likes", "like_count"), ("Comments", "comment_count"), ("views", "view_count"), ("", "view_count")],
    )
    def test_keys(self, text, expected):
        from ytchat.chat.channel import resolve_metric_key

        assert resolve_metric_key(text) == expected

    def test_duration_only_when_allowed(self):
        from ytchat.chat.channel import resolve_metric_key

        assert resolve_metric_key("duration") == "view_count"
        assert resolve_metric_key("duration", allow_duration=True) == "duration"


class TestSummaries:
    def test_summarize_channel_json(self):
        from ytchat.chat.channel import summarize_channel_json

        text = summarize_channel_json(_channel())
        assert text.splitlines()[0] == "**YouTube channel JSON loaded**"
        assert "- Videos: 3" in text
        assert "- Date range: 2024-01-15 → 2024-03-01" in text
        assert '"First upload"' in text
        assert "- Channel: Science Shorts" in text

    def test_summary_skips_non_object_entries(self):
        from ytchat.chat.channel import summarize_channel_json

        text = summarize_channel_json({"videos": [None, "x", {"title": "Real", "published_at": ["2024"]}]})
        assert "- Videos: 1" in text
        assert '"Real"' in text
        assert "Date range" not in text

    def test_channel_totals(self):
        from ytchat.chat.channel import channel_totals

        totals = channel_totals(_channel())
        assert totals["count"] == 3
        assert totals["totals"] == {"views": 900, "likes": 80, "comments": 8}
        assert totals["start_date"] == "2024-01-15"
        assert totals["end_date"] == "2024-03-01"


class TestSliceChannelSample:
    @pytest.mark.parametrize("raw,expected", [("500", 100), ("0", 1), ("abc", 1), (7, 7)])
    def test_clamp(self, raw, expected):
        from ytchat.chat.channel import clamp_video_count

        assert clamp_video_count(raw) == expected

    def test_slice(self):
        from ytchat.chat.channel import slice_channel_sample

        payload = slice_channel_sample(_channel(), handle="@shorts", url="https://www.youtube.com/@shorts", max_videos=2)
        assert len(payload["videos"]) == 2
        assert payload["channel"]["handle"] == "@shorts"
        assert payload["channel"]["title"] == "Science Shorts"
        assert payload["channel"]["max_videos_requested"] == 2
        assert "downloaded_at" in payload["channel"]
