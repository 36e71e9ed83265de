# tests/test_tools.py
from __future__ import annotations

import math

import pytest


def _rows() -> list[dict]:
    return [
        {"text": "alpha", "type": "tweet", "favoriteCount": 10, "viewCount": 100},
        {"text": "beta", "type": "reply", "favoriteCount": 5, "viewCount": 0},
        {"text": "gamma", "type": "tweet", "favoriteCount": None, "viewCount": 50},
        {"text": "delta", "type": "tweet", "favoriteCount": 30, "viewCount": 200},
    ]


CSV_TEXT = (
    "text,type,favoriteCount,viewCount\n"
    "hello,tweet,10,100\n"
    "world,reply,5,0\n"
    "again,tweet,,50\n"
)


class TestColumnStats:
    def test_basic_stats(self):
        from ytchat.chat.tools import column_stats

        stats = column_stats(_rows(), "viewCount")
        assert stats["column"] == "viewCount"
        assert stats["count"] == 4
        assert stats["mean"] == pytest.approx(87.5)
        assert stats["median"] == pytest.approx(75.0)
        assert stats["min"] == 0
        assert stats["max"] == 200
        assert stats["std"] == pytest.approx(math.sqrt(5468.75))

    def test_ordering_invariants(self):
        from ytchat.chat.tools import column_stats

        stats = column_stats([{"v": x} for x in (3, 1, 4, 1, 5, 9, 2, 6)], "v")
        assert stats["min"] <= stats["median"] <= stats["max"]
        assert stats["min"] <= stats["mean"] <= stats["max"]

    def test_ignores_non_numeric_and_missing(self):
        from ytchat.chat.tools import column_stats

        stats = column_stats([{"v": "x"}, {"v": "3"}, {"v": 5}, {"v": None}], "v")
        assert stats["count"] == 2
        assert stats["mean"] == pytest.approx(4.0)

    def test_no_numeric_values_is_error(self):
        from ytchat.chat.tools import column_stats

        result = column_stats(_rows(), "type")
        assert "error" in result
        assert "No numeric values" in result["error"]

    def test_unknown_column_is_error(self):
        from ytchat.chat.tools import column_stats

        result = column_stats(_rows(), "nope")
        assert "not found" in result["error"]

    def test_column_name_is_matched_loosely(self):
        from ytchat.chat.tools import column_stats

        stats = column_stats(_rows(), "view_count")
        assert stats["column"] == "viewCount"


class TestValueCounts:
    def test_descending_with_first_seen_ties(self):
        from ytchat.chat.tools import value_counts

        rows = [{"k": v} for v in ("tweet", "reply", "tweet", "quote", "reply")]
        result = value_counts(rows, "k")
        assert result == [
            {"value": "tweet", "count": 2},
            {"value": "reply", "count": 2},
            {"value": "quote", "count": 1},
        ]

    def test_top_n_limits(self):
        from ytchat.chat.tools import value_counts

        rows = [{"k": v} for v in "abcdeabca"]
        assert len(value_counts(rows, "k", top_n=2)) == 2

    def test_unknown_column(self):
        from ytchat.chat.tools import value_counts

        assert "error" in value_counts(_rows(), "missing")


class TestEngagement:
    def test_ratio(self):
        from ytchat.chat.tools import engagement_ratio

        assert engagement_ratio({"favoriteCount": 10, "viewCount": 100}) == pytest.approx(0.1)
        assert engagement_ratio({"favorite": 10, "view": 100}) == pytest.approx(0.1)

    def test_zero_views_is_undefined(self):
        from ytchat.chat.tools import engagement_ratio

        assert engagement_ratio({"favoriteCount": 10, "viewCount": 0}) is None

    def test_missing_input_is_undefined(self):
        from ytchat.chat.tools import engagement_ratio

        assert engagement_ratio({"viewCount": 100}) is None
        assert engagement_ratio({"favoriteCount": None, "viewCount": 100}) is None

    def test_snake_case_aliases(self):
        from ytchat.chat.tools import engagement_ratio

        assert engagement_ratio({"favorite_count": 1, "view_count": 4}) == pytest.approx(0.25)

    def test_enrich_keeps_every_row(self):
        from ytchat.chat.loaders import Dataset
        from ytchat.chat.tools import ENGAGEMENT_COLUMN, enrich_with_engagement

        enriched = enrich_with_engagement(Dataset.from_rows(_rows()))
        assert len(enriched) == 4
        values = [row[ENGAGEMENT_COLUMN] for row in enriched.rows]
        assert values[0] == pytest.approx(0.1)
        assert values[1] is None
        assert values[2] is None
        assert values[3] == pytest.approx(0.15)

    def test_enrich_without_inputs_is_unchanged(self):
        from ytchat.chat.loaders import Dataset
        from ytchat.chat.tools import enrich_with_engagement

        dataset = Dataset.from_rows([{"a": 1}])
        assert enrich_with_engagement(dataset).headers == ["a"]


class TestTopN:
    def test_descending_and_stable(self):
        from ytchat.chat.tools import top_n

        rows = [
            {"title": "a", "views": 5},
            {"title": "b", "views": 9},
            {"title": "c", "views": 9},
            {"title": "d", "views": "x"},
            {"title": "e", "views": 1},
        ]
        result = top_n(rows, "views", 3)
        assert [r["title"] for r in result] == ["b", "c", "a"]
        values = [r["views"] for r in result]
        assert values == sorted(values, reverse=True)

    def test_ascending(self):
        from ytchat.chat.tools import top_n

        rows = [{"title": t, "views": v} for t, v in (("a", 3), ("b", 1), ("c", 2))]
        assert [r["title"] for r in top_n(rows, "views", 2, ascending=True)] == ["b", "c"]

    def test_excludes_non_numeric_rows(self):
        from ytchat.chat.tools import top_n

        rows = [{"title": "a", "views": None}, {"title": "b", "views": "n/a"}, {"title": "c", "views": 2}]
        assert [r["title"] for r in top_n(rows, "views", 10)] == ["c"]

    def test_n_larger_than_rows(self):
        from ytchat.chat.tools import top_n

        assert len(top_n(_rows(), "viewCount", 50)) == 4

    def test_projects_display_fields(self):
        from ytchat.chat.tools import top_n

        result = top_n(_rows(), "viewCount", 1)
        assert set(result[0]) == {"text", "type", "viewCount"}

    def test_unknown_column(self):
        from ytchat.chat.tools import top_n

        assert "error" in top_n(_rows(), "nope")


class TestPromptContext:
    def test_dataset_summary(self):
        from ytchat.chat.loaders import parse_csv
        from ytchat.chat.tools import compute_dataset_summary

        summary = compute_dataset_summary(parse_csv(CSV_TEXT).dataset)
        assert summary.startswith("Dataset summary: 3 rows x 5 columns.")
        assert "Numeric columns:" in summary
        assert "- viewCount: mean=50" in summary
        assert "type: tweet (2), reply (1)" in summary

    def test_slim_csv_keeps_key_columns(self):
        from ytchat.chat.loaders import Dataset
        from ytchat.chat.tools import build_slim_csv

        dataset = Dataset.from_rows(
            [{"id": 1, "text": "hi", "type": "tweet", "viewCount": 10, "lang": "en"}]
        )
        slim = build_slim_csv(dataset)
        assert slim.splitlines()[0] == "text,type,viewCount"

    def test_slim_csv_caps_rows_and_clips_text(self):
        from ytchat.chat.loaders import Dataset
        from ytchat.chat.tools import build_slim_csv

        dataset = Dataset.from_rows([{"text": "x" * 300, "viewCount": i} for i in range(10)])
        lines = build_slim_csv(dataset, max_rows=2, text_chars=20).splitlines()
        assert len(lines) == 3
        assert lines[1].startswith("x" * 20 + ",")


class TestExecuteTool:
    def _dataset(self):
        from ytchat.chat.loaders import parse_csv

        return parse_csv(CSV_TEXT).dataset

    def test_compute_stats(self):
        from ytchat.chat.tools import execute_tool

        result = execute_tool("compute_stats", {"column": "viewCount"}, self._dataset())
        assert result["count"] == 3

    def test_top_n_wraps_rows(self):
        from ytchat.chat.tools import execute_tool

        result = execute_tool("top_n", {"column": "viewCount", "n": 2}, self._dataset())
        assert [r["text"] for r in result["rows"]] == ["hello", "again"]

    def test_value_counts_wraps_values(self):
        from ytchat.chat.tools import execute_tool

        result = execute_tool("value_counts", {"column": "type"}, self._dataset())
        assert result["values"][0] == {"value": "tweet", "count": 2}

    def test_plot_engagement_chart(self):
        from ytchat.chat.tools import execute_tool

        chart = execute_tool("plot_engagement", {}, self._dataset())
        assert chart["chart_type"] == "engagement"
        assert chart["data"] == [{"label": "hello", "value": pytest.approx(0.1)}]

    def test_unknown_tool(self):
        from ytchat.chat.tools import execute_tool

        assert execute_tool("drop_table", {}, self._dataset()) == {"error": "Unknown tool: drop_table"}

    def test_bad_arguments(self):
        from ytchat.chat.tools import execute_tool

        result = execute_tool("top_n", {"column": "viewCount", "n": "many"}, self._dataset())
        assert result["error"].startswith("Invalid arguments for top_n")

    def test_declarations_match_executor(self):
        from ytchat.chat.tools import CSV_TOOL_DECLARATIONS, execute_tool

        for decl in CSV_TOOL_DECLARATIONS:
            name = decl["function"]["name"]
            assert execute_tool(name, {"column": "viewCount"}, self._dataset()) != {"error": f"Unknown tool: {name}"}
