"""Chat session orchestration.

A ``ChatSession`` owns one conversation: the attachments waiting to be sent,
the dataset or channel export loaded so far, and the message list. ``send``
runs one turn end to end: persist the user message, route it, run the chosen
strategy, then persist the reply.
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

from ..metrics import TurnMetrics, track_step
from ..utils.logging import get_logger
from .channel import (
    compute_stats_json,
    format_stats_answer,
    play_video,
    plot_metric_vs_time,
    resolve_metric_key,
)
from .control_plane import IntentRouter, RoutingContext, RoutingRules, Strategy
from .loaders import (
    AttachmentError,
    ChannelJsonAttachment,
    CsvAttachment,
    Dataset,
    ImageAttachment,
    load_attachment,
    parse_channel_json,
    parse_csv,
    parse_image,
)
from .messages import AttachmentMeta, Message, SessionRecord, ToolCall
from .prompts import build_history, build_prompt, format_user_header
from .tools import build_slim_csv, compute_dataset_summary, execute_tool

logger = get_logger(__name__)

UpdateCallback = Callable[[Message], None]

_GENERATE_PREFIX_RE = re.compile(r"^\s*generateimage\s*:", re.I)
_METRIC_ARG_RE = re.compile(r"plot_metric_vs_time\s*:\s*([a-zA-Z_]+)", re.I)
_METRIC_WORD_RE = re.compile(r"\b(views?|likes?|comments?)\b", re.I)
_STATS_ARG_RE = re.compile(r"compute_stats_json\s*:\s*([a-zA-Z_]+)", re.I)
_STATS_WORD_RE = re.compile(r"\b(views?|likes?|comments?|duration)\b", re.I)
_PLAY_ARG_RE = re.compile(r"play_video\s*:\s*(.+)$", re.I)

# SessionNotFound is a KeyError.
_STORE_ERRORS = (OSError, ValueError, KeyError)


class SessionState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPUTING = "computing"


def _first_group(text: str, *patterns: re.Pattern[str]) -> str | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


class ChatSession:
    """Stateful chat over an optional dataset or channel export.

    Parameters
    ----------
    model:
        Model service (``ytchat.model.ModelClient`` or anything with the same
        ``send`` / ``send_with_tools`` / ``generate_image`` methods).
    store:
        Session store used to persist sessions and messages.
    username, full_name:
        Identify the user to the model via a ``User:`` header turn.
    config:
        ``YtchatConfig``; defaults to ``get_config()``.
    on_update:
        Called with the assistant message each time it changes.
    """

    def __init__(
        self,
        model: Any,
        store: Any,
        username: str,
        *,
        full_name: str = "",
        agent: str | None = None,
        config: Any = None,
        router: IntentRouter | None = None,
        on_update: UpdateCallback | None = None,
    ) -> None:
        if config is None:
            from ..config import get_config

            config = get_config()
        self.model = model
        self.store = store
        self.username = username
        self.full_name = full_name
        self.agent = agent or config.agent_name
        self.config = config
        if router is None:
            rules = RoutingRules.from_yaml(config.routing_rules_path) if config.routing_rules_path else None
            router = IntentRouter(rules)
        self.router = router
        self.on_update = on_update

        self.record: SessionRecord | None = None
        self.messages: list[Message] = []
        self.notices: list[str] = []
        self.generated_images: dict[str, list[Any]] = {}
        self.last_metrics: TurnMetrics | None = None

        self._state = SessionState.IDLE
        self._cancelled = False
        self._reset_context()

    def _reset_context(self) -> None:
        self.pending_csv: CsvAttachment | None = None
        self.pending_json: ChannelJsonAttachment | None = None
        self.pending_images: list[ImageAttachment] = []
        self.dataset: Dataset | None = None
        self.dataset_summary = ""
        self.slim_csv = ""
        self.channel_json: Any = None
        self.json_error: str | None = None

    # -- properties --------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_id(self) -> str | None:
        return self.record.id if self.record else None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def has_pending(self) -> bool:
        return bool(self.pending_images) or self.pending_csv is not None or self.pending_json is not None

    # -- attachments -------------------------------------------------------

    def _notice(self, text: str) -> None:
        logger.warning("Attachment notice: %s", text)
        self.notices.append(text)

    def _install(self, attachment: CsvAttachment | ChannelJsonAttachment | ImageAttachment) -> Any:
        if isinstance(attachment, ImageAttachment):
            self.pending_images.append(attachment)
        elif isinstance(attachment, CsvAttachment):
            # CSV and channel context never coexist.
            self.pending_json = None
            self.channel_json = None
            self.json_error = None
            self.pending_csv = attachment
            self.dataset = attachment.dataset
            self.dataset_summary = compute_dataset_summary(attachment.dataset)
            self.slim_csv = build_slim_csv(
                attachment.dataset,
                max_rows=self.config.slim_max_rows,
                text_chars=self.config.slim_text_chars,
            )
            logger.info("Loaded CSV %s: %d rows", attachment.name, attachment.row_count)
        else:
            self.pending_json = attachment
            if attachment.error:
                self.channel_json = None
                self.json_error = attachment.error
                self._notice(f"{attachment.name}: {attachment.error}")
            else:
                self.channel_json = attachment.data
                self.json_error = None
                self.pending_csv = None
                self.dataset = None
                self.dataset_summary = ""
                self.slim_csv = ""
                logger.info("Loaded channel JSON %s: %d videos", attachment.name, len(attachment.videos))
        return attachment

    def attach_csv(self, text: str, name: str = "data.csv") -> CsvAttachment | None:
        try:
            return self._install(parse_csv(text, name))
        except AttachmentError as exc:
            self._notice(str(exc))
            return None

    def attach_json(self, text: str, name: str = "channel.json") -> ChannelJsonAttachment:
        return self._install(parse_channel_json(text, name))

    def attach_image(self, raw: bytes, name: str = "image") -> ImageAttachment | None:
        try:
            return self._install(parse_image(raw, name))
        except AttachmentError as exc:
            self._notice(str(exc))
            return None

    def attach_file(self, path: Path | str) -> Any:
        """Attach a file by suffix. Failures become notices, not exceptions."""
        try:
            attachment = load_attachment(path)
        except (AttachmentError, OSError, UnicodeDecodeError) as exc:
            self._notice(str(exc))
            return None
        return self._install(attachment)

    def clear_attachments(self) -> None:
        """Drop attachments waiting to be sent. Loaded data stays available."""
        self.pending_csv = None
        self.pending_json = None
        self.pending_images = []

    def dismiss_notices(self) -> list[str]:
        notices, self.notices = self.notices, []
        return notices

    # -- session switching -------------------------------------------------

    def new_chat(self) -> None:
        """Start an unsaved chat; it is created in the store on first send."""
        self.record = None
        self.messages = []
        self.notices = []
        self.generated_images = {}
        self._reset_context()

    def select(self, session_id: str) -> SessionRecord:
        """Switch to a stored session and reload its messages."""
        if self.record is not None and self.record.id == session_id:
            return self.record
        record = self.store.get_session(session_id)
        messages = self.store.load_messages(session_id)
        self.new_chat()
        self.record = record
        self.messages = messages
        return record

    def _ensure_session(self) -> str | None:
        if self.record is None:
            try:
                self.record = self.store.create_session(self.username, self.agent)
            except _STORE_ERRORS as exc:
                self._store_failed("new session", exc)
                return None
        return self.record.id

    # -- sending -----------------------------------------------------------

    def cancel(self) -> None:
        """Stop consuming the current reply. Takes effect at the next chunk."""
        if self._state is not SessionState.IDLE:
            self._cancelled = True

    def _notify(self, message: Message) -> None:
        if self.on_update is not None:
            self.on_update(message)

    def routing_context(self) -> RoutingContext:
        return RoutingContext(
            has_channel_json=self.channel_json is not None,
            has_dataset_rows=self.dataset is not None and len(self.dataset) > 0,
            csv_attached=self.pending_csv is not None,
        )

    def send(self, text: str = "", images: Sequence[ImageAttachment] | None = None) -> Message | None:
        """Send one message and return the persisted reply.

        Returns ``None`` without doing anything when a send is already in
        progress, or when there is no text and nothing attached.
        """
        if self._state is not SessionState.IDLE:
            logger.debug("send() ignored: session is %s", self._state.value)
            return None
        text = (text or "").strip()
        all_images = [*self.pending_images, *(images or [])]
        if not text and not all_images and self.pending_csv is None and self.pending_json is None:
            return None

        self._state = SessionState.SENDING
        self._cancelled = False
        metrics = TurnMetrics()
        try:
            return self._send(text, all_images, metrics)
        finally:
            self._state = SessionState.IDLE
            self.last_metrics = metrics

    def _send(self, text: str, images: list[ImageAttachment], metrics: TurnMetrics) -> Message:
        session_id = self._ensure_session()
        csv, channel = self.pending_csv, self.pending_json

        strategy = self.router.route(text, self.routing_context())
        metrics.strategy = strategy.value
        logger.info("Session %s: routing to %s", session_id, strategy.value)

        attachments: list[AttachmentMeta] = [img.meta() for img in images]
        if csv is not None:
            attachments.append(csv.meta())
        if channel is not None:
            attachments.append(channel.meta())

        reply = Message(role="model", text="")
        history = build_history(self.messages, format_user_header(self.username, self.full_name))
        try:
            assembled = build_prompt(
                text,
                strategy=strategy,
                csv=csv,
                channel=channel,
                headers=self.dataset.headers if self.dataset is not None else None,
                summary=self.dataset_summary,
                slim_csv=self.slim_csv,
                has_images=bool(images),
                max_base64_chars=self.config.max_base64_source_chars,
            )
        except Exception as exc:
            logger.error("Session %s: prompt assembly failed: %s", session_id, exc, exc_info=True)
            assembled = None
            reply.text = f"Error: {exc}"
            reply.error = True

        display_text = assembled.display_text if assembled is not None else text
        user_message = self._save(
            session_id, Message(role="user", text=display_text, attachments=attachments or None)
        )
        self.messages.append(user_message)
        self.clear_attachments()

        self.messages.append(reply)
        self._notify(reply)

        images_out: list[Any] = []
        tracker = getattr(self.model, "tracker", None)
        if assembled is not None:
            try:
                with track_step(metrics, strategy.value, tracker):
                    if strategy is Strategy.GENERATE_IMAGE:
                        images_out = self._generate_image(text, images, reply)
                    elif strategy in (Strategy.METRIC_PLOT, Strategy.STATS, Strategy.PLAY_VIDEO):
                        self._run_channel_tool(strategy, text, reply)
                    elif strategy is Strategy.CLIENT_TOOLS:
                        self._run_client_tools(history, assembled.prompt, reply)
                    else:
                        self._stream(history, assembled.prompt, images, strategy is Strategy.CODE_EXECUTION, reply)
            except Exception as exc:
                logger.error("Session %s: %s failed: %s", session_id, strategy.value, exc, exc_info=True)
                reply.text = f"Error: {exc}"
                reply.error = True
                reply.charts = None
                images_out = []
                self._notify(reply)

        saved = self._save_reply(session_id, reply)
        self.messages[-1] = saved
        if images_out and not saved.error:
            self.generated_images[saved.id] = images_out
        if self.record is not None:
            self.record = self.record.model_copy(update={"message_count": self.record.message_count + 2})
        return saved

    # -- persistence -------------------------------------------------------

    def _store_failed(self, what: str, exc: Exception) -> None:
        logger.error("Could not save %s: %s", what, exc, exc_info=True)
        self._notice(f"Could not save {what}: {exc}")

    def _save(self, session_id: str | None, message: Message) -> Message:
        """Persist *message*; on store failure keep it in memory and add a notice."""
        if session_id is None:
            return message
        try:
            return self.store.save_message(
                session_id,
                message.role,
                message.text,
                attachments=message.attachments,
                charts=message.charts,
                tool_calls=message.tool_calls,
                error=message.error,
            )
        except _STORE_ERRORS as exc:
            self._store_failed(f"{message.role} message", exc)
            return message

    def _save_reply(self, session_id: str | None, reply: Message) -> Message:
        """Persist the finished reply. A reply the store rejects is replaced by an error reply."""
        try:
            if session_id is None:
                return Message(
                    role="model", text=reply.text, charts=reply.charts, tool_calls=reply.tool_calls, error=reply.error
                )
            return self.store.save_message(
                session_id,
                "model",
                reply.text,
                charts=reply.charts,
                tool_calls=reply.tool_calls,
                error=reply.error,
            )
        except _STORE_ERRORS as exc:
            logger.error("Session %s: reply rejected by store: %s", session_id, exc, exc_info=True)
            failed = Message(role="model", text=f"Error: could not save reply: {exc}", error=True)
        saved = self._save(session_id, failed)
        self._notify(saved)
        return saved

    # -- strategies --------------------------------------------------------

    def _generate_image(self, text: str, images: list[ImageAttachment], reply: Message) -> list[Any]:
        self._state = SessionState.COMPUTING
        prompt = _GENERATE_PREFIX_RE.sub("", text).strip() or "Generate an image."
        anchor = images[0] if images else None
        image = self.model.generate_image(prompt, anchor)
        reply.text = f'Generated image for: "{prompt}"'
        self._notify(reply)
        return [image]

    def _run_channel_tool(self, strategy: Strategy, text: str, reply: Message) -> None:
        self._state = SessionState.COMPUTING
        charts: list[dict[str, Any]] = []
        calls: list[ToolCall] = []

        if strategy is Strategy.METRIC_PLOT:
            raw = _first_group(text, _METRIC_ARG_RE, _METRIC_WORD_RE) or "view_count"
            metric = resolve_metric_key(raw)
            chart = plot_metric_vs_time(self.channel_json, metric)
            calls.append(ToolCall(name="plot_metric_vs_time", args={"metric": metric}, result=chart))
            if "error" in chart:
                reply.text = chart["error"]
            else:
                charts.append(chart)
                reply.text = f"Plotted {metric} vs time for {len(chart['data'])} videos."
        elif strategy is Strategy.STATS:
            raw = _first_group(text, _STATS_ARG_RE, _STATS_WORD_RE) or "view_count"
            field = resolve_metric_key(raw, allow_duration=True)
            stats = compute_stats_json(self.channel_json, field)
            calls.append(ToolCall(name="compute_stats_json", args={"field": field}, result=stats))
            reply.text = format_stats_answer(stats)
        else:
            match = _PLAY_ARG_RE.search(text)
            which = match.group(1).strip() if match else text
            info = play_video(self.channel_json, which)
            calls.append(ToolCall(name="play_video", args={"which": which}, result=info))
            if "error" in info:
                reply.text = info["error"]
            else:
                reply.text = f"Opening video: {info['title']}"
                charts.append({"chart_type": "video_card", **info})

        reply.charts = charts or None  # type: ignore[assignment]
        reply.tool_calls = calls or None
        self._notify(reply)

    def _run_client_tools(self, history: list[dict[str, str]], prompt: str, reply: Message) -> None:
        self._state = SessionState.COMPUTING
        dataset = self.dataset
        if dataset is None:
            raise RuntimeError("No dataset loaded.")

        def executor(name: str, args: Any) -> dict[str, Any]:
            return execute_tool(name, args, dataset)

        result = self.model.send_with_tools(history, prompt, dataset.headers, executor)
        reply.text = result.text
        reply.charts = list(result.charts) or None  # type: ignore[assignment]
        reply.tool_calls = list(result.tool_calls) or None
        self._notify(reply)

    def _stream(
        self,
        history: list[dict[str, str]],
        prompt: str,
        images: list[ImageAttachment],
        code_execution: bool,
        reply: Message,
    ) -> None:
        self._state = SessionState.STREAMING
        chunks: Iterable[str] = self.model.send(history, prompt, images, code_execution)
        try:
            for chunk in chunks:
                if self._cancelled:
                    logger.info("Reply cancelled after %d characters", len(reply.text))
                    break
                reply.text += chunk
                self._notify(reply)
        finally:
            close = getattr(chunks, "close", None)
            if close is not None:
                close()
