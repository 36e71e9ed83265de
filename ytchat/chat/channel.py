"""Tools over a loaded YouTube channel export (``videos`` or ``items`` list)."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

import pandas as pd

from .loaders import get_videos
from .tools import describe_values, format_number

NO_VIDEOS_ERROR = "No videos loaded. Please attach a YouTube channel JSON file first."


def _section(obj: Any, key: str) -> dict[str, Any]:
    value = obj.get(key) if isinstance(obj, dict) else None
    return value if isinstance(value, dict) else {}


def _published_at(video: dict[str, Any]) -> Any:
    snippet = _section(video, "snippet")
    return video.get("published_at") or video.get("publishedAt") or snippet.get("publishedAt")


def _title(video: dict[str, Any]) -> str:
    snippet = _section(video, "snippet")
    return str(video.get("title") or snippet.get("title") or "")


def _parse_date(raw: Any) -> pd.Timestamp | None:
    if not raw or not isinstance(raw, (str, int, float)):
        return None
    ts = pd.to_datetime(raw, errors="coerce", utc=True)
    if ts is None or pd.isna(ts):
        return None
    return ts


def _metric_value(video: dict[str, Any], key: str) -> Any:
    stats = _section(video, "statistics")
    for candidate in (video.get(key), video.get(f"{key}_count"), stats.get(key), stats.get(f"{key}_count")):
        if candidate is not None:
            return candidate
    if key == "view_count":
        return video.get("view_count") or stats.get("viewCount")
    if key == "like_count":
        return stats.get("likeCount")
    if key == "comment_count":
        return stats.get("commentCount")
    return None


def _as_float(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if number != number else number


def resolve_metric_key(text: str, *, allow_duration: bool = False) -> str:
    """Map free text (``likes``, ``comments`` ...) to a channel metric field."""
    raw = text or ""
    if re.search(r"like", raw, re.I):
        return "like_count"
    if re.search(r"comment", raw, re.I):
        return "comment_count"
    if allow_duration and re.search(r"duration", raw, re.I):
        return "duration"
    return "view_count"


def plot_metric_vs_time(channel_json: Any, metric: str = "view_count") -> dict[str, Any]:
    """Date-sorted series of *metric* per video, as a ``metric_vs_time`` chart payload."""
    videos = get_videos(channel_json)
    if not videos:
        return {"error": NO_VIDEOS_ERROR}

    key = metric or "view_count"
    points: list[dict[str, Any]] = []
    for video in videos:
        ts = _parse_date(_published_at(video))
        value = _as_float(_metric_value(video, key))
        if ts is None or value is None:
            continue
        points.append({"date": ts.strftime("%Y-%m-%d"), "label": _title(video)[:60], "value": value})

    if not points:
        return {"error": f'Could not find numeric data for metric "{metric}".'}

    points.sort(key=lambda p: p["date"])
    return {"chart_type": "metric_vs_time", "metric": key, "data": points}


def play_video(channel_json: Any, which: str = "") -> dict[str, Any]:
    """Pick a video by title fragment, ``most viewed`` / ``least viewed``, or the first one."""
    videos = get_videos(channel_json)
    if not videos:
        return {"error": NO_VIDEOS_ERROR}

    normalised = []
    for video in videos:
        thumbs = _section(_section(video, "snippet"), "thumbnails")
        video_id = video.get("video_id") or video.get("id") or _section(video, "contentDetails").get("videoId")
        if isinstance(video_id, dict):
            video_id = video_id.get("videoId")
        if video_id is not None:
            video_id = str(video_id)
        normalised.append(
            {
                "video_id": video_id,
                "title": _title(video),
                "thumbnail_url": str(
                    video.get("thumbnail_url")
                    or _section(thumbs, "high").get("url")
                    or _section(thumbs, "default").get("url")
                    or ""
                ),
                "view_count": _as_float(_metric_value(video, "view_count")) or 0.0,
                "url": str(video["video_url"])
                if video.get("video_url")
                else (f"https://www.youtube.com/watch?v={video_id}" if video_id else None),
            }
        )

    q = (which or "").lower()
    chosen = normalised[0]
    if "most viewed" in q or "top" in q or "best" in q:
        chosen = max(normalised, key=lambda v: v["view_count"])
    elif "least viewed" in q or "worst" in q:
        chosen = min(normalised, key=lambda v: v["view_count"])
    elif q:
        chosen = next((v for v in normalised if q in v["title"].lower()), chosen)

    return {
        "video_id": chosen["video_id"],
        "title": chosen["title"],
        "thumbnail_url": chosen["thumbnail_url"],
        "url": chosen["url"],
    }


def compute_stats_json(channel_json: Any, field: str = "view_count") -> dict[str, Any]:
    """Mean, median, std, min, max and count of a numeric field across all videos."""
    videos = get_videos(channel_json)
    if not videos:
        return {"error": NO_VIDEOS_ERROR}
    key = field or "view_count"
    stats = describe_values(_metric_value(v, key) for v in videos)
    if stats is None:
        return {"error": f'No numeric values found for field "{field}".'}
    return {"field": key, **stats}


def summarize_channel_json(obj: Any) -> str:
    """Compact markdown summary of a channel export used in prompts."""
    videos = get_videos(obj)
    dates = sorted(ts for ts in (_parse_date(_published_at(v)) for v in videos) if ts is not None)
    titles = [t for t in (_title(v) for v in videos[:3]) if t]
    keys = list(videos[0].keys()) if videos and isinstance(videos[0], dict) else []
    fields = ", ".join(keys[:12]) + (", …" if len(keys) > 12 else "")
    channel = _section(obj, "channel")
    channel_title = (
        channel.get("title")
        or (obj.get("channelTitle") if isinstance(obj, dict) else None)
        or channel.get("handle")
        or channel.get("url")
        or ""
    )

    lines = ["**YouTube channel JSON loaded**", f"- Videos: {len(videos)}"]
    if dates:
        lines.append(f"- Date range: {dates[0]:%Y-%m-%d} → {dates[-1]:%Y-%m-%d}")
    if fields:
        lines.append(f"- Example fields: {fields}")
    if titles:
        lines.append("- Example titles: " + ", ".join(f'"{t[:80]}"' for t in titles))
    if channel_title:
        lines.append(f"- Channel: {channel_title}")
    return "\n".join(lines)


def format_stats_answer(stats: dict[str, Any]) -> str:
    """One-line rendering of a ``compute_stats_json`` result."""
    if "error" in stats:
        return str(stats["error"])
    return (
        f"Stats for {stats['field']} (n={stats['count']}): mean={stats['mean']:.2f}, "
        f"median={stats['median']:.2f}, std={stats['std']:.2f}, "
        f"min={format_number(stats['min'])}, max={format_number(stats['max'])}."
    )


# ---------------------------------------------------------------------------
# Channel sample export
# ---------------------------------------------------------------------------


def clamp_video_count(value: Any, low: int = 1, high: int = 100) -> int:
    try:
        n = int(str(value).strip())
    except (TypeError, ValueError):
        return low
    return max(low, min(high, n))


def slice_channel_sample(
    raw: Any,
    *,
    handle: str,
    url: str,
    max_videos: int,
) -> dict[str, Any]:
    """Build a downloadable channel payload from a sample export."""
    target = clamp_video_count(max_videos)
    videos = get_videos(raw)[:target]
    channel = _section(raw, "channel")
    return {
        "channel": {
            "handle": handle,
            "url": url,
            "title": channel.get("title") or handle,
            "downloaded_at": datetime.now(timezone.utc).isoformat(),
            "max_videos_requested": target,
        },
        "videos": videos,
    }


def channel_totals(data: Any) -> dict[str, Any]:
    """Video count, view/like/comment totals and date range of an export."""
    videos = get_videos(data)
    totals = {"views": 0.0, "likes": 0.0, "comments": 0.0}
    for video in videos:
        totals["views"] += _as_float(_metric_value(video, "view_count")) or 0.0
        totals["likes"] += _as_float(_metric_value(video, "like_count")) or 0.0
        totals["comments"] += _as_float(_metric_value(video, "comment_count")) or 0.0
    dates = sorted(ts for ts in (_parse_date(_published_at(v)) for v in videos) if ts is not None)
    return {
        "count": len(videos),
        "totals": {k: int(v) for k, v in totals.items()},
        "start_date": dates[0].strftime("%Y-%m-%d") if dates else None,
        "end_date": dates[-1].strftime("%Y-%m-%d") if dates else None,
    }
