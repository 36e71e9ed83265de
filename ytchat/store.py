"""JSON-file session store.

One file per session under ``<home_dir>/sessions/<id>.json`` holding the
session header and its append-only message list. Message text is scrubbed
of inline base64 payloads before it is written.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

from .chat.messages import AttachmentMeta, Message, SessionRecord, ToolCall
from .utils.logging import get_logger

logger = get_logger(__name__)

_DATA_URL_RE = re.compile(r"data:[\w.+-]+/[\w.+-]+;base64,[A-Za-z0-9+/]+(?:\r?\n[A-Za-z0-9+/]+)*={0,2}")
_BASE64_CALL_RE = re.compile(r'b64decode\("[A-Za-z0-9+/=]{64,}"\)')

BASE64_PLACEHOLDER = "[binary data omitted]"


class SessionNotFound(KeyError):
    """Raised for an unknown session id."""


def strip_base64(text: str) -> str:
    """Replace inline data URLs and embedded base64 loaders with a placeholder."""
    if not text:
        return text
    text = _DATA_URL_RE.sub(BASE64_PLACEHOLDER, text)
    return _BASE64_CALL_RE.sub(f'b64decode("{BASE64_PLACEHOLDER}")', text)


def chat_title(now: datetime | None = None) -> str:
    """Default title, e.g. ``Chat · Oct 17 14:05``."""
    now = now or datetime.now()
    return f"Chat · {now:%b} {now.day} {now:%H:%M}"


class SessionStore:
    """Persistence for chat sessions."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).expanduser()

    @classmethod
    def from_config(cls, cfg: Any) -> SessionStore:
        return cls(cfg.sessions_dir)

    # -- file helpers ------------------------------------------------------

    def _path(self, session_id: str) -> Path:
        if not re.fullmatch(r"[A-Za-z0-9_-]+", session_id or ""):
            raise SessionNotFound(session_id)
        return self.root / f"{session_id}.json"

    def _read(self, session_id: str) -> dict[str, Any]:
        path = self._path(session_id)
        if not path.exists():
            raise SessionNotFound(session_id)
        return json.loads(path.read_text(encoding="utf-8"))

    def _write(self, session_id: str, doc: dict[str, Any]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self._path(session_id)
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=f".{session_id}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(doc, fh, ensure_ascii=False, indent=2)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    # -- sessions ----------------------------------------------------------

    def create_session(self, username: str, agent: str, title: str | None = None) -> SessionRecord:
        record = SessionRecord(
            id=uuid.uuid4().hex[:16],
            username=username,
            agent=agent,
            title=title or chat_title(),
        )
        self._write(record.id, {"session": record.model_dump(), "messages": []})
        logger.info("Created session %s for %s", record.id, username)
        return record

    def get_session(self, session_id: str) -> SessionRecord:
        return SessionRecord.model_validate(self._read(session_id)["session"])

    def list_sessions(self, username: str) -> list[SessionRecord]:
        """Sessions of *username*, newest first."""
        if not self.root.is_dir():
            return []
        records: list[SessionRecord] = []
        for path in self.root.glob("*.json"):
            try:
                doc = json.loads(path.read_text(encoding="utf-8"))
                record = SessionRecord.model_validate(doc["session"])
            except (OSError, ValueError, KeyError) as exc:
                logger.warning("Skipping unreadable session file %s: %s", path.name, exc)
                continue
            if record.username == username:
                records.append(record)
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records

    def delete_session(self, session_id: str) -> None:
        path = self._path(session_id)
        if not path.exists():
            raise SessionNotFound(session_id)
        path.unlink()
        logger.info("Deleted session %s", session_id)

    # -- messages ----------------------------------------------------------

    def save_message(
        self,
        session_id: str,
        role: str,
        text: str,
        attachments: Sequence[AttachmentMeta] | None = None,
        charts: Sequence[Any] | None = None,
        tool_calls: Sequence[ToolCall] | None = None,
        error: bool = False,
    ) -> Message:
        """Append one message and bump the session's message count."""
        doc = self._read(session_id)
        message = Message(
            role=role,  # type: ignore[arg-type]
            text=strip_base64(text),
            attachments=list(attachments) if attachments else None,
            charts=list(charts) if charts else None,
            tool_calls=list(tool_calls) if tool_calls else None,
            error=error,
        )
        doc["messages"].append(message.model_dump(mode="json"))
        doc["session"]["message_count"] = len(doc["messages"])
        self._write(session_id, doc)
        return message

    def load_messages(self, session_id: str) -> list[Message]:
        return [Message.model_validate(m) for m in self._read(session_id)["messages"]]
