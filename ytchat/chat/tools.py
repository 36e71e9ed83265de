"""Local statistics, ranking and CSV tools available during chat sessions.

Everything here is deterministic and runs on the in-memory table; errors are
returned as ``{"error": ...}`` payloads so they can be shown in place of an
answer.
"""

from __future__ import annotations

import math
import re
from typing import Any, Iterable, Mapping

import pandas as pd

from .loaders import Dataset

_FAVORITE_KEYS = (
    "favoritecount",
    "favouritecount",
    "favorites",
    "favourites",
    "favorite",
    "favourite",
    "likecount",
    "likes",
)
_VIEW_KEYS = ("viewcount", "views", "view", "impressioncount", "impressions")
_TEXT_KEYS = {"text", "fulltext", "title", "content", "tweet", "body", "caption"}
_DISPLAY_KEYS = _TEXT_KEYS | {"type", "createdat", "publishedat", "date", "url"}
_METRIC_WORDS = ("count", "views", "likes", "favorites", "retweets", "replies", "comments", "quotes", "shares")

ENGAGEMENT_COLUMN = "engagement"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _compact_key(name: Any) -> str:
    return re.sub(r"[^a-z0-9]", "", str(name).lower())


def _normalize_column_name(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", str(name).lower()).strip("_")


def _as_frame(rows: Dataset | pd.DataFrame | Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    if isinstance(rows, Dataset):
        return rows.frame
    if isinstance(rows, pd.DataFrame):
        return rows
    return pd.DataFrame.from_records(list(rows))


def _resolve_column(df: pd.DataFrame, column: str) -> str:
    columns = [str(c) for c in df.columns]
    if column in columns:
        return column
    col_map = {_normalize_column_name(c): c for c in columns}
    n = _normalize_column_name(column)
    if n in col_map:
        return col_map[n]
    compact = {_compact_key(c): c for c in columns}
    if _compact_key(column) in compact:
        return compact[_compact_key(column)]
    raise KeyError(f'Column "{column}" not found. Available: {columns}')


def _find_column(columns: Iterable[Any], keys: tuple[str, ...]) -> str | None:
    by_key = {_compact_key(c): str(c) for c in columns}
    for key in keys:
        if key in by_key:
            return by_key[key]
    return None


def _numeric(series: pd.Series) -> pd.Series:
    return pd.to_numeric(series, errors="coerce")


def _to_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def _py(value: Any) -> Any:
    """Convert numpy/pandas scalars to plain Python values."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    if hasattr(value, "item"):
        return value.item()
    return value


def format_number(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.4f}".rstrip("0").rstrip(".")


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def describe_values(values: Iterable[Any]) -> dict[str, Any] | None:
    """Summarise the numeric members of *values*; ``None`` if there are none."""
    nums = _numeric(pd.Series(list(values), dtype=object)).dropna()
    if nums.empty:
        return None
    lo = float(nums.min())
    hi = float(nums.max())
    # Float summation can land a hair outside [min, max].
    mean = min(max(float(nums.mean()), lo), hi)
    return {
        "count": int(nums.size),
        "mean": mean,
        "median": float(nums.median()),
        "std": float(nums.std(ddof=0)),
        "min": lo,
        "max": hi,
    }


def column_stats(rows: Dataset | pd.DataFrame | Iterable[Mapping[str, Any]], column: str) -> dict[str, Any]:
    """Mean, median, population std, min, max and count of a column.

    Non-numeric and missing cells are ignored.
    """
    df = _as_frame(rows)
    try:
        col = _resolve_column(df, column)
    except KeyError as exc:
        return {"error": str(exc.args[0])}
    stats = describe_values(df[col])
    if stats is None:
        return {"error": f'No numeric values found for column "{column}".'}
    return {"column": col, **stats}


def value_counts(
    rows: Dataset | pd.DataFrame | Iterable[Mapping[str, Any]],
    column: str,
    top_n: int = 10,
) -> list[dict[str, Any]] | dict[str, Any]:
    """Most frequent values of a column, ties kept in first-seen order."""
    df = _as_frame(rows)
    try:
        col = _resolve_column(df, column)
    except KeyError as exc:
        return {"error": str(exc.args[0])}
    series = df[col].dropna()
    if series.empty:
        return []
    counts = series.groupby(series, sort=False).size()
    counts = counts.sort_values(ascending=False, kind="stable")
    return [
        {"value": _py(value), "count": int(count)}
        for value, count in counts.head(max(0, int(top_n))).items()
    ]


def engagement_ratio(row: Mapping[str, Any]) -> float | None:
    """favoriteCount / viewCount, or ``None`` unless both exist and views > 0."""
    fav_col = _find_column(row.keys(), _FAVORITE_KEYS)
    view_col = _find_column(row.keys(), _VIEW_KEYS)
    if fav_col is None or view_col is None:
        return None
    favorites = _to_number(row.get(fav_col))
    views = _to_number(row.get(view_col))
    if favorites is None or views is None or views <= 0:
        return None
    return favorites / views


def enrich_with_engagement(dataset: Dataset) -> Dataset:
    """Return a copy with an ``engagement`` column.

    Rows lacking either input keep a missing value in that column; no row is
    dropped. Tables without both source columns come back unchanged.
    """
    df = dataset.frame
    fav_col = _find_column(df.columns, _FAVORITE_KEYS)
    view_col = _find_column(df.columns, _VIEW_KEYS)
    if fav_col is None or view_col is None:
        return dataset
    favorites = _numeric(df[fav_col])
    views = _numeric(df[view_col])
    valid = favorites.notna() & views.notna() & (views > 0)
    ratio = (favorites / views.where(valid)).where(valid)
    out = df.copy()
    out[ENGAGEMENT_COLUMN] = ratio.astype(float)
    return Dataset(frame=out)


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


def _display_fields(df: pd.DataFrame, column: str) -> list[str]:
    fields = [
        str(c)
        for c in df.columns
        if _compact_key(c) in _DISPLAY_KEYS or str(c) == column or str(c) == ENGAGEMENT_COLUMN
    ]
    return fields or [str(c) for c in df.columns]


def top_n(
    rows: Dataset | pd.DataFrame | Iterable[Mapping[str, Any]],
    column: str,
    n: int = 5,
    ascending: bool = False,
) -> list[dict[str, Any]] | dict[str, Any]:
    """Top (or bottom) *n* rows by the numeric value of *column*.

    The sort is stable, so equal values keep their original order. Rows
    without a numeric value in *column* are left out of the ranking.
    """
    df = _as_frame(rows)
    try:
        col = _resolve_column(df, column)
    except KeyError as exc:
        return {"error": str(exc.args[0])}
    ranked = df.assign(__rank=_numeric(df[col])).dropna(subset=["__rank"])
    ranked = ranked.sort_values("__rank", ascending=ascending, kind="stable")
    fields = _display_fields(df, col)
    records = ranked.head(max(0, int(n)))[fields].to_dict(orient="records")
    return [{k: _py(v) for k, v in rec.items()} for rec in records]


# ---------------------------------------------------------------------------
# Prompt context
# ---------------------------------------------------------------------------


def numeric_columns(df: pd.DataFrame) -> list[str]:
    return [
        str(c)
        for c in df.columns
        if pd.api.types.is_numeric_dtype(df[c]) and not pd.api.types.is_bool_dtype(df[c])
    ]


def compute_dataset_summary(dataset: Dataset, max_categories: int = 12) -> str:
    """Short human-readable summary: shape, numeric stats, small categorical columns."""
    df = dataset.frame
    lines = [f"Dataset summary: {len(df):,} rows x {len(df.columns)} columns."]

    num_cols = numeric_columns(df)
    stat_lines: list[str] = []
    for col in num_cols:
        stats = describe_values(df[col])
        if stats is None:
            continue
        stat_lines.append(
            f"- {col}: mean={format_number(stats['mean'])}, median={format_number(stats['median'])}, "
            f"std={format_number(stats['std'])}, min={format_number(stats['min'])}, "
            f"max={format_number(stats['max'])} (n={stats['count']})"
        )
    if stat_lines:
        lines.append("Numeric columns:")
        lines.extend(stat_lines)

    cat_lines: list[str] = []
    for col in df.columns:
        if str(col) in num_cols:
            continue
        series = df[col].dropna()
        unique = int(series.nunique())
        if series.empty or unique > max_categories or unique >= len(series):
            continue
        counts = value_counts(df, str(col), top_n=5)
        if isinstance(counts, list) and counts:
            rendered = ", ".join(f"{c['value']} ({c['count']})" for c in counts)
            cat_lines.append(f"- {col}: {rendered}")
    if cat_lines:
        lines.append("Categorical columns (top values):")
        lines.extend(cat_lines)

    return "\n".join(lines)


def _slim_columns(df: pd.DataFrame) -> list[str]:
    keep: list[str] = []
    for c in df.columns:
        key = _compact_key(c)
        if key in _TEXT_KEYS or key == "type" or str(c) == ENGAGEMENT_COLUMN:
            keep.append(str(c))
        elif any(key.endswith(word) for word in _METRIC_WORDS) and pd.api.types.is_numeric_dtype(df[c]):
            keep.append(str(c))
    return keep or [str(c) for c in df.columns]


def build_slim_csv(dataset: Dataset, max_rows: int = 500, text_chars: int = 140) -> str:
    """Key columns only (text, type, metric counts, engagement) as CSV text."""
    df = dataset.frame
    slim = df[_slim_columns(df)].head(max(0, int(max_rows))).copy()
    for col in slim.columns:
        if _compact_key(col) in _TEXT_KEYS:
            slim[col] = (
                slim[col]
                .astype("string")
                .str.replace(r"\s+", " ", regex=True)
                .str.slice(0, text_chars)
            )
    if ENGAGEMENT_COLUMN in slim.columns:
        slim[ENGAGEMENT_COLUMN] = slim[ENGAGEMENT_COLUMN].round(4)
    return slim.to_csv(index=False).strip()


# ---------------------------------------------------------------------------
# Tool-calling surface
# ---------------------------------------------------------------------------


def engagement_chart(dataset: Dataset, n: int = 10) -> dict[str, Any]:
    """Top-*n* rows by engagement as an ``engagement`` chart payload."""
    df = dataset.frame
    if ENGAGEMENT_COLUMN not in df.columns:
        return {"error": "Engagement needs both a favorite count and a view count column."}
    ranked = top_n(df, ENGAGEMENT_COLUMN, n=n)
    if isinstance(ranked, dict):
        return ranked
    if not ranked:
        return {"error": "No rows have a defined engagement ratio."}
    label_col = next((c for c in df.columns if _compact_key(c) in _TEXT_KEYS), None)
    data = []
    for i, row in enumerate(ranked, start=1):
        label = str(row.get(label_col) or "") if label_col else ""
        data.append({"label": label[:60] or f"#{i}", "value": float(row[ENGAGEMENT_COLUMN])})
    return {"chart_type": "engagement", "column": ENGAGEMENT_COLUMN, "data": data}


CSV_TOOL_DECLARATIONS: list[dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "compute_stats",
            "description": "Compute mean, median, std, min, max and count for a numeric column of the loaded CSV.",
            "parameters": {
                "type": "object",
                "properties": {"column": {"type": "string", "description": "Column name."}},
                "required": ["column"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "value_counts",
            "description": "Most frequent values of a column with their counts.",
            "parameters": {
                "type": "object",
                "properties": {
                    "column": {"type": "string"},
                    "top_n": {"type": "integer", "description": "How many values to return (default 10)."},
                },
                "required": ["column"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "top_n",
            "description": "Top or bottom N rows ranked by a numeric column.",
            "parameters": {
                "type": "object",
                "properties": {
                    "column": {"type": "string"},
                    "n": {"type": "integer", "description": "Number of rows (default 5)."},
                    "ascending": {"type": "boolean", "description": "True for the lowest values."},
                },
                "required": ["column"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "plot_engagement",
            "description": "Chart the rows with the highest engagement ratio (favorites / views).",
            "parameters": {
                "type": "object",
                "properties": {"n": {"type": "integer", "description": "Number of rows (default 10)."}},
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "dataset_summary",
            "description": "Row/column counts and per-column statistics of the loaded CSV.",
            "parameters": {"type": "object", "properties": {}},
        },
    },
]


def execute_tool(name: str, args: Mapping[str, Any] | None, dataset: Dataset) -> dict[str, Any]:
    """Run one CSV tool by name. Failures come back as ``{"error": ...}``."""
    args = dict(args or {})
    try:
        if name == "compute_stats":
            return column_stats(dataset, str(args.get("column", "")))
        if name == "value_counts":
            result = value_counts(dataset, str(args.get("column", "")), int(args.get("top_n") or 10))
            return result if isinstance(result, dict) else {"values": result}
        if name == "top_n":
            result = top_n(
                dataset,
                str(args.get("column", "")),
                n=int(args.get("n") or 5),
                ascending=bool(args.get("ascending", False)),
            )
            return result if isinstance(result, dict) else {"rows": result}
        if name == "plot_engagement":
            return engagement_chart(dataset, n=int(args.get("n") or 10))
        if name == "dataset_summary":
            return {"summary": compute_dataset_summary(dataset)}
    except (TypeError, ValueError) as exc:
        return {"error": f"Invalid arguments for {name}: {exc}"}
    return {"error": f"Unknown tool: {name}"}
