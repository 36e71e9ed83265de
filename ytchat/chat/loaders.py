"""Attachment loaders for chat sessions."""

from __future__ import annotations

import base64
import io
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd

from .messages import AttachmentMeta


class AttachmentError(ValueError):
    """Raised when an attached file cannot be parsed."""


# ---------------------------------------------------------------------------
# Tabular data
# ---------------------------------------------------------------------------


@dataclass
class Dataset:
    """An in-memory table: ordered headers plus rows of scalars."""

    frame: pd.DataFrame

    @classmethod
    def from_rows(cls, rows: list[dict[str, Any]], headers: list[str] | None = None) -> Dataset:
        frame = pd.DataFrame.from_records(rows, columns=headers)
        return cls(frame=frame)

    @property
    def headers(self) -> list[str]:
        return [str(c) for c in self.frame.columns]

    @property
    def rows(self) -> list[dict[str, Any]]:
        records = self.frame.astype(object).where(self.frame.notna(), None)
        return records.to_dict(orient="records")

    def __len__(self) -> int:
        return len(self.frame)


@dataclass
class CsvAttachment:
    name: str
    text: str
    dataset: Dataset

    @property
    def size(self) -> int:
        return len(self.text.encode("utf-8"))

    @property
    def row_count(self) -> int:
        return len(self.dataset)

    def meta(self) -> AttachmentMeta:
        return AttachmentMeta(kind="csv", name=self.name, mime_type="text/csv", size=self.size)


@dataclass
class ChannelJsonAttachment:
    """A YouTube channel export. ``error`` is set when the text was not valid JSON."""

    name: str
    size: int
    data: Any = None
    error: str | None = None

    @property
    def videos(self) -> list[dict[str, Any]]:
        return get_videos(self.data)

    def meta(self) -> AttachmentMeta:
        return AttachmentMeta(kind="json", name=self.name, mime_type="application/json", size=self.size)


@dataclass
class ImageAttachment:
    name: str
    mime_type: str
    data: str = field(repr=False)  # base64, no data-URL prefix

    @property
    def size(self) -> int:
        return len(self.data) * 3 // 4

    def meta(self) -> AttachmentMeta:
        return AttachmentMeta(kind="image", name=self.name, mime_type=self.mime_type, size=self.size)


def get_videos(channel_json: Any) -> list[dict[str, Any]]:
    """Normalise a channel export into its list of videos (``videos`` or ``items``).

    Entries that are not objects are skipped.
    """
    if not isinstance(channel_json, dict):
        return []
    for key in ("videos", "items"):
        if isinstance(channel_json.get(key), list):
            return [v for v in channel_json[key] if isinstance(v, dict)]
    return []


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


def parse_csv(text: str, name: str = "data.csv") -> CsvAttachment:
    """Parse comma-delimited text with a required header row.

    The engagement column is added here so every consumer sees the same
    enriched table.
    """
    from .tools import enrich_with_engagement

    if not text or not text.strip():
        raise AttachmentError(f"CSV file {name!r} is empty.")
    try:
        frame = pd.read_csv(io.StringIO(text), skip_blank_lines=True)
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as exc:
        raise AttachmentError(f"Invalid CSV {name!r}: {exc}") from exc
    frame.columns = [str(c).strip().strip('"') for c in frame.columns]
    dataset = enrich_with_engagement(Dataset(frame=frame))
    return CsvAttachment(name=name, text=text, dataset=dataset)


def parse_channel_json(text: str, name: str = "channel.json") -> ChannelJsonAttachment:
    """Parse a channel export.

    Invalid JSON does not raise: the attachment keeps the error notice so the
    next prompt can mention it.
    """
    size = len(text.encode("utf-8"))
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        return ChannelJsonAttachment(name=name, size=size, error=f"Invalid JSON: {exc.msg}")
    return ChannelJsonAttachment(name=name, size=size, data=data)


def parse_image(raw: bytes, name: str = "image") -> ImageAttachment:
    """Validate raster image bytes and encode them as base64."""
    from PIL import Image, UnidentifiedImageError

    try:
        with Image.open(io.BytesIO(raw)) as img:
            fmt = img.format or ""
            img.verify()
    except (UnidentifiedImageError, OSError) as exc:
        raise AttachmentError(f"Unsupported or corrupt image {name!r}: {exc}") from exc
    mime_type = Image.MIME.get(fmt, "image/png")
    return ImageAttachment(name=name, mime_type=mime_type, data=base64.b64encode(raw).decode("ascii"))


# ---------------------------------------------------------------------------
# File dispatch
# ---------------------------------------------------------------------------

_IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".tif", ".tiff"}


def load_attachment(path: Path | str) -> CsvAttachment | ChannelJsonAttachment | ImageAttachment:
    """Load an attachment file, dispatching on its suffix.

    Supported formats:
    - .csv -> CsvAttachment
    - .json -> ChannelJsonAttachment
    - image suffixes, or any file Pillow recognises -> ImageAttachment
    """
    path = Path(path)
    if not path.exists():
        raise AttachmentError(f"Attachment not found: {path}")
    suffix = path.suffix.lower()

    if suffix == ".csv":
        return parse_csv(path.read_text(encoding="utf-8"), name=path.name)
    elif suffix == ".json":
        return parse_channel_json(path.read_text(encoding="utf-8"), name=path.name)
    elif suffix in _IMAGE_SUFFIXES:
        return parse_image(path.read_bytes(), name=path.name)

    # Unknown suffix: accept it if the bytes are a recognisable image.
    try:
        return parse_image(path.read_bytes(), name=path.name)
    except AttachmentError:
        raise AttachmentError(
            f"Unsupported attachment type {suffix or '(none)'!r} for {path.name}. "
            "Attach a .csv, .json or image file."
        ) from None
