"""Prompt assembly for model calls.

The assembled prompt is what the model sees; the display text is what the
user sees and what gets stored. Only the prompt may carry dataset context,
and only the code-execution strategy ever embeds the base64-encoded CSV.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from .channel import summarize_channel_json
from .control_plane import Strategy
from .loaders import ChannelJsonAttachment, CsvAttachment
from .messages import Message

SEPARATOR = "---"

DEFAULT_IMAGE_QUESTION = "What do you see in this image?"
DEFAULT_JSON_QUESTION = "Please analyze this YouTube channel JSON."
DEFAULT_CSV_QUESTION = "Please analyze this CSV data."

SYSTEM_ACK = "Got it! I'll follow those instructions."


@dataclass
class AssembledPrompt:
    """Model-facing prompt plus the text shown to (and stored for) the user."""

    display_text: str
    prompt: str
    includes_base64: bool = False


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


def encode_dataset_base64(text: str, max_chars: int = 500_000) -> tuple[str, bool]:
    """Base64 of the UTF-8 CSV text, cut to *max_chars* characters first.

    Returns ``(encoded, truncated)``.
    """
    truncated = len(text) > max_chars
    raw = text[:max_chars] if truncated else text
    return base64.b64encode(raw.encode("utf-8")).decode("ascii"), truncated


def slim_block(slim_csv: str) -> str:
    if not slim_csv:
        return ""
    return f"Full dataset (key columns):\n```csv\n{slim_csv}\n```"


def code_execution_block(encoded: str, truncated: bool, max_chars: int) -> str:
    lines = [
        "IMPORTANT — to load the full data in Python use this exact pattern:",
        "```python",
        "import pandas as pd, io, base64",
        f'df = pd.read_csv(io.BytesIO(base64.b64decode("{encoded}")))',
        "```",
    ]
    if truncated:
        lines.append(f"(The encoded data was truncated to the first {max_chars:,} characters of the file.)")
    return "\n".join(lines)


def csv_identity(csv: CsvAttachment) -> str:
    return f'[CSV File: "{csv.name}" | {csv.row_count} rows | Columns: {", ".join(csv.dataset.headers)}]'


def json_prefix(channel: ChannelJsonAttachment) -> list[str]:
    if channel.error:
        return [f'[YouTube Channel JSON: "{channel.name}"]', channel.error]
    data = channel.data if isinstance(channel.data, dict) else {}
    has_list = isinstance(data.get("videos"), list) or isinstance(data.get("items"), list)
    count = len(channel.videos) if has_list else "unknown"
    return [f'[YouTube Channel JSON: "{channel.name}" | {count} videos]', summarize_channel_json(channel.data)]


def default_question(*, has_images: bool, has_json: bool) -> str:
    if has_images:
        return DEFAULT_IMAGE_QUESTION
    if has_json:
        return DEFAULT_JSON_QUESTION
    return DEFAULT_CSV_QUESTION


def display_text(text: str, *, has_images: bool, has_csv: bool) -> str:
    if text:
        return text
    if has_images:
        return "(Image)"
    if has_csv:
        return "(CSV attached)"
    return "(JSON attached)"


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def build_prompt(
    text: str,
    *,
    strategy: Strategy,
    csv: CsvAttachment | None = None,
    channel: ChannelJsonAttachment | None = None,
    headers: Sequence[str] | None = None,
    summary: str = "",
    slim_csv: str = "",
    has_images: bool = False,
    max_base64_chars: int = 500_000,
) -> AssembledPrompt:
    """Assemble the prompt for one message.

    ``csv`` and ``channel`` are the attachments sent with *this* message;
    ``headers``/``summary``/``slim_csv`` describe the dataset the session
    already holds. Blocks appear in a fixed order: channel identity and
    summary, dataset identity, summary, slim data, code-execution loader,
    separator, then the question.
    """
    text = (text or "").strip()
    blocks: list[str] = []
    includes_base64 = False

    if channel is not None:
        blocks.extend(json_prefix(channel))
        blocks.append(SEPARATOR)

    if csv is not None:
        blocks.append(csv_identity(csv))
        if summary:
            blocks.append(summary)
        if slim_csv:
            blocks.append(slim_block(slim_csv))
        if strategy is Strategy.CODE_EXECUTION:
            encoded, truncated = encode_dataset_base64(csv.text, max_base64_chars)
            blocks.append(code_execution_block(encoded, truncated, max_base64_chars))
            includes_base64 = True
        blocks.append(SEPARATOR)
    elif summary:
        blocks.append(f"[CSV columns: {', '.join(headers or [])}]")
        blocks.append(summary)
        blocks.append(SEPARATOR)

    question = text or default_question(has_images=has_images, has_json=channel is not None)
    blocks.append(question)

    return AssembledPrompt(
        display_text=display_text(text, has_images=has_images, has_csv=csv is not None),
        prompt="\n\n".join(b for b in blocks if b),
        includes_base64=includes_base64,
    )


def format_user_header(username: str, full_name: str = "") -> str:
    name = (full_name or "").strip()
    return f"User: {name} (@{username})" if name else f"User: @{username}"


def build_history(messages: Iterable[Message], user_header: str | None = None) -> list[dict[str, str]]:
    """Plain-text history turns. Only message text is used, never attachments."""
    turns: list[dict[str, str]] = []
    if user_header:
        turns.append({"role": "user", "content": user_header})
    for message in messages:
        if message.role not in ("user", "model"):
            continue
        turns.append({"role": message.role, "content": message.text or ""})
    return turns


def system_turns(system_prompt: str | None) -> list[dict[str, str]]:
    """Instruction/acknowledgement pair placed before the history."""
    if not system_prompt:
        return []
    return [
        {"role": "user", "content": f"Follow these instructions in every response:\n\n{system_prompt}"},
        {"role": "model", "content": SYSTEM_ACK},
    ]


def load_system_prompt(path: Path | str | None) -> str:
    """Read the system prompt file; a missing path gives an empty prompt."""
    if path is None:
        return ""
    p = Path(path).expanduser()
    if not p.is_file():
        return ""
    return p.read_text(encoding="utf-8").strip()
