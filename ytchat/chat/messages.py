"""Message, chart and session models shared by the chat session and the store."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Chart payloads (tagged on chart_type)
# ---------------------------------------------------------------------------


class MetricPoint(BaseModel):
    """One point of a metric-vs-time series."""

    date: str  # YYYY-MM-DD
    label: str
    value: float


class MetricVsTimeChart(BaseModel):
    chart_type: Literal["metric_vs_time"] = "metric_vs_time"
    metric: str
    data: list[MetricPoint]


class VideoCard(BaseModel):
    chart_type: Literal["video_card"] = "video_card"
    title: str
    thumbnail_url: str = ""
    url: str | None = None
    video_id: str | None = None


class LabeledValue(BaseModel):
    label: str
    value: float


class EngagementChart(BaseModel):
    chart_type: Literal["engagement"] = "engagement"
    column: str = "engagement"
    data: list[LabeledValue]


Chart = Annotated[
    Union[MetricVsTimeChart, VideoCard, EngagementChart],
    Field(discriminator="chart_type"),
]


class ToolCall(BaseModel):
    """Log entry for one executed tool."""

    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: Any = None


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------


class AttachmentMeta(BaseModel):
    """Stored description of an attachment. Never carries file contents."""

    kind: Literal["image", "csv", "json"]
    name: str
    mime_type: str = ""
    size: int = 0


# ---------------------------------------------------------------------------
# Messages and sessions
# ---------------------------------------------------------------------------


class Message(BaseModel):
    """One chat turn as displayed and persisted."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    role: Literal["user", "model"]
    text: str = ""
    timestamp: str = Field(default_factory=_now)
    attachments: list[AttachmentMeta] | None = None
    charts: list[Chart] | None = None
    tool_calls: list[ToolCall] | None = None
    error: bool = False


class SessionRecord(BaseModel):
    """Stored session header (without messages)."""

    id: str
    username: str
    agent: str
    title: str
    created_at: str = Field(default_factory=_now)
    message_count: int = 0
