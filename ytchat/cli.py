# ytchat/cli.py
"""
YTCHAT CLI -- Click commands with a Rich terminal UI.

Provides the ``ytchat`` console entry-point declared in pyproject.toml as
``ytchat.cli:cli``:

- chat:      interactive or one-shot chat over CSV / channel JSON / images
- sessions:  list, show and delete stored sessions
- stats:     local column statistics for a CSV file (no model call)
- channel:   slice a sample channel export, summarise an export
- config:    YtchatConfig display and persistence
"""

from __future__ import annotations

import base64
import io
import json
import logging
import os
import re
import signal
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Optional

import click
from rich import box
from rich.console import Console
from rich.markup import escape as _esc
from rich.padding import Padding
from rich.panel import Panel
from rich.prompt import Prompt

from . import __version__
from . import cli_theme as theme
from .config import get_config

console = Console()


def _print_version(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
    if not value or ctx.resilient_parsing:
        return
    theme.print_version(__version__, console)
    ctx.exit()


def _default_user() -> str:
    return os.environ.get("USER") or os.environ.get("USERNAME") or "local"


# ---------------------------------------------------------------------------
# Styled Click help
# ---------------------------------------------------------------------------


def _render_styled_help(plain: str, width: int = 80) -> str:
    """Re-render Click help with the theme colours and a 2-space indent."""
    buf = io.StringIO()
    rc = Console(file=buf, force_terminal=True, width=width + 4, highlight=False)
    section: str | None = None

    for line in plain.splitlines():
        stripped = line.strip()
        if not stripped:
            rc.print()
            continue

        if line == stripped:
            if stripped.startswith("Usage:"):
                rest = stripped[6:].strip()
                rc.print(f"  [bold {theme.RED}]Usage:[/bold {theme.RED}] [{theme.SLATE}]{_esc(rest)}[/{theme.SLATE}]")
                section = None
                continue
            bare = stripped.rstrip(":")
            if bare in ("Options", "Commands", "Arguments"):
                rc.print(f"  [bold {theme.RED}]{stripped}[/bold {theme.RED}]")
                section = bare.lower()
                continue

        if section == "commands":
            m = re.match(r"^(\s+)(\S+)(\s{2,})(.+)$", line)
            if m:
                ind, name, gap, desc = m.groups()
                rc.print(
                    f"  {ind}[bold {theme.RED}]{_esc(name)}[/bold {theme.RED}]"
                    f"{gap}[{theme.MUTED}]{_esc(desc)}[/{theme.MUTED}]"
                )
                continue

        if section == "options":
            m = re.match(r"^(\s+)(-.+?)(\s{2,})(.+)$", line)
            if m:
                ind, flags, gap, desc = m.groups()
                rc.print(
                    f"  {ind}[{theme.SLATE}]{_esc(flags)}[/{theme.SLATE}]"
                    f"{gap}[{theme.MUTED}]{_esc(desc)}[/{theme.MUTED}]"
                )
                continue

        if section:
            rc.print(f"  [{theme.MUTED}]{_esc(line)}[/{theme.MUTED}]")
        else:
            rc.print(f"  [{theme.MUTED}]{_esc(stripped)}[/{theme.MUTED}]")

    return buf.getvalue()


class YtchatGroup(click.Group):
    """Click group with styled help output."""

    def format_help(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        if ctx.parent is None:
            cfg = get_config()
            theme.print_banner(__version__, console, lm=cfg.lm, image_lm=cfg.image_lm)
        tmp = click.HelpFormatter(width=formatter.width)
        super().format_help(ctx, tmp)
        formatter.write(_render_styled_help(tmp.getvalue(), formatter.width or 80))

    def group(self, *args, **kwargs):
        kwargs.setdefault("cls", YtchatGroup)
        return super().group(*args, **kwargs)

    def command(self, *args, **kwargs):
        kwargs.setdefault("cls", YtchatCommand)
        return super().command(*args, **kwargs)


class YtchatCommand(click.Command):
    """Click command with styled help output."""

    def format_help(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        tmp = click.HelpFormatter(width=formatter.width)
        super().format_help(ctx, tmp)
        formatter.write(_render_styled_help(tmp.getvalue(), formatter.width or 80))


# ---------------------------------------------------------------------------
# Main CLI group
# ---------------------------------------------------------------------------


@click.group(invoke_without_command=True, cls=YtchatGroup)
@click.option(
    "--version",
    is_flag=True,
    callback=_print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log at DEBUG level and echo logs to stderr.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """YTCHAT -- chat with your YouTube channel exports and CSV data."""
    from .utils.logging import setup_logging

    logging.getLogger("LiteLLM").setLevel(logging.ERROR)
    logging.getLogger("litellm").setLevel(logging.ERROR)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    os.environ.setdefault("LITELLM_LOG", "ERROR")

    cfg = get_config()
    log_dir = None if os.getenv("YTCHAT_LOG_DIR") else cfg.log_dir
    try:
        setup_logging(level="DEBUG" if verbose else None, log_dir=log_dir, console_output=verbose)
    except OSError as exc:
        console.print(theme.warn(f"File logging disabled: {exc}"))

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _render_charts(charts: list[Any]) -> None:
    for chart in charts:
        data = chart.model_dump() if hasattr(chart, "model_dump") else dict(chart)
        kind = data.get("chart_type")
        if kind == "metric_vs_time":
            t = theme.make_table(title=f"{data['metric']} over time")
            t.add_column("Date", no_wrap=True)
            t.add_column("Video")
            t.add_column("Value", justify="right")
            for point in data["data"]:
                t.add_row(point["date"], _esc(point["label"]), f"{point['value']:,.0f}")
            console.print(Padding(t, (0, 0, 0, 2)))
        elif kind == "engagement":
            t = theme.make_table(title="Engagement (favorites / views)")
            t.add_column("#", justify="right")
            t.add_column("Label")
            t.add_column("Ratio", justify="right")
            t.add_column("")
            top = max((p["value"] for p in data["data"]), default=0.0) or 1.0
            for i, point in enumerate(data["data"], start=1):
                bar = "█" * max(1, round(20 * point["value"] / top))
                t.add_row(str(i), _esc(point["label"]), f"{point['value']:.4f}", f"[{theme.RED}]{bar}[/{theme.RED}]")
            console.print(Padding(t, (0, 0, 0, 2)))
        elif kind == "video_card":
            body = _esc(data.get("url") or "(no url)")
            if data.get("thumbnail_url"):
                body += f"\n[{theme.MUTED}]{_esc(data['thumbnail_url'])}[/{theme.MUTED}]"
            console.print(
                Padding(
                    Panel(
                        body,
                        title=f"[bold {theme.RED}]{_esc(data.get('title') or 'Video')}[/bold {theme.RED}]",
                        border_style=theme.SLATE,
                        box=box.ROUNDED,
                    ),
                    (0, 2),
                )
            )


def _render_trace(message: Any, metrics: Any) -> None:
    t = theme.make_kv_table()
    if metrics is not None:
        t.add_row("strategy", metrics.strategy or "—")
        t.add_row("duration", f"{metrics.total_duration_s:.2f}s")
        t.add_row("tokens", f"{metrics.total_input_tokens:,} in · {metrics.total_output_tokens:,} out")
    for call in message.tool_calls or []:
        t.add_row(f"tool {call.name}", _esc(json.dumps(call.args, default=str)))
    console.print(Padding(t, (0, 0, 0, 2)))


def _save_images(session: Any, message_id: str, target: Path) -> None:
    for i, image in enumerate(session.generated_images.get(message_id, []), start=1):
        target.mkdir(parents=True, exist_ok=True)
        ext = image.mime_type.split("/")[-1] or "png"
        path = target / f"{message_id}-{i}.{ext}"
        path.write_bytes(base64.b64decode(image.data))
        console.print(theme.ok(f"Saved image to {path}"))


@contextmanager
def _cancel_on_sigint(session: Any) -> Generator[None, None, None]:
    """Route Ctrl-C to ``session.cancel()`` while a reply is produced."""

    def _handler(_signum: int, _frame: Any) -> None:
        session.cancel()

    try:
        previous = signal.signal(signal.SIGINT, _handler)
    except ValueError:
        # Not in the main thread.
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _print_notices(session: Any) -> None:
    for notice in session.dismiss_notices():
        console.print(theme.warn(_esc(notice)))


# ---------------------------------------------------------------------------
# chat
# ---------------------------------------------------------------------------

_CHAT_HELP = (
    "Commands: /attach PATH · /clear · /new · /sessions · /open ID · /exit. "
    "Ctrl-C stops a reply."
)


@cli.command()
@click.option("--user", "-u", "username", default=_default_user, show_default="$USER", help="Username owning the session.")
@click.option("--name", "full_name", default="", help="Full name shown to the model.")
@click.option("--attach", "-a", "attachments", type=click.Path(exists=True, dir_okay=False, path_type=Path), multiple=True, help="CSV, channel JSON or image file to attach (repeatable).")
@click.option("--session", "session_id", default=None, help="Resume a stored session.")
@click.option("--question", "-q", default=None, help="Ask a single question and exit.")
@click.option("--trace", "show_trace", is_flag=True, default=False, help="Show strategy, tool calls, timing and tokens per turn.")
@click.option("--save-images", type=click.Path(file_okay=False, path_type=Path), default=None, help="Directory for generated images (default: <home_dir>/images).")
def chat(
    username: str,
    full_name: str,
    attachments: tuple[Path, ...],
    session_id: Optional[str],
    question: Optional[str],
    show_trace: bool,
    save_images: Optional[Path],
) -> None:
    """Chat with the model about your data.

    \b
    Examples:
      ytchat chat -a videos.csv -q "Which videos have the best engagement?"
      ytchat chat -a channel.json -q "plot views over time"
      ytchat chat -q "generateimage: a red play button on a chalkboard"
      ytchat chat --session 3f2a9c1d0b7e4a51
    """
    from .sdk import open_session
    from .store import SessionNotFound

    cfg = get_config()
    image_dir = save_images or (cfg.home_dir / "images")
    printed = {"n": 0}

    def _on_update(message: Any) -> None:
        text = message.text or ""
        if len(text) > printed["n"] and not message.error:
            console.print(text[printed["n"]:], end="", markup=False, highlight=False, soft_wrap=True)
            printed["n"] = len(text)

    try:
        session = open_session(
            username,
            full_name=full_name,
            attachments=list(attachments),
            session_id=session_id,
            on_update=_on_update,
        )
    except SessionNotFound as exc:
        raise click.ClickException(f"Session not found: {exc.args[0]}")
    except (OSError, ValueError) as exc:
        raise click.ClickException(str(exc))

    theme.print_banner(__version__, console, lm=cfg.lm, image_lm=cfg.image_lm, agent=session.agent)
    _print_notices(session)
    if session.record is not None:
        console.print(theme.info(f"Resumed {session.record.title} ({len(session.messages)} messages)"))

    def _turn(text: str) -> None:
        printed["n"] = 0
        console.print(f"  [bold {theme.RED}]{_esc(session.agent)}[/bold {theme.RED}]")
        with _cancel_on_sigint(session):
            reply = session.send(text)
        _print_notices(session)
        if reply is None:
            console.print(theme.info("Nothing to send."))
            return
        if reply.error:
            console.print(theme.err(_esc(reply.text)))
        elif printed["n"] < len(reply.text):
            console.print(reply.text[printed["n"]:], markup=False, highlight=False)
        else:
            console.print()
        if session.cancelled:
            console.print(theme.warn("Reply stopped."))
        _render_charts(reply.charts or [])
        _save_images(session, reply.id, image_dir)
        if show_trace:
            _render_trace(reply, session.last_metrics)

    if question is not None:
        _turn(question)
        return

    console.print(theme.info(_CHAT_HELP))
    while True:
        try:
            raw = Prompt.ask(f"  [bold {theme.RED}]You[/bold {theme.RED}]", default="", show_default=False)
        except (EOFError, KeyboardInterrupt):
            console.print()
            break

        line = raw.strip()
        if line.lower() in {"/exit", "exit", "quit", ":q"}:
            break
        if line.startswith("/attach "):
            session.attach_file(Path(line[len("/attach "):].strip()).expanduser())
            _print_notices(session)
            pending = [img.name for img in session.pending_images]
            if session.pending_csv is not None:
                pending.append(session.pending_csv.name)
            if session.pending_json is not None:
                pending.append(session.pending_json.name)
            if pending:
                console.print(theme.info("Attached: " + ", ".join(pending)))
            continue
        if line == "/clear":
            session.clear_attachments()
            console.print(theme.info("Attachments cleared."))
            continue
        if line == "/new":
            session.new_chat()
            console.print(theme.info("New chat."))
            continue
        if line == "/sessions":
            _print_session_table(session.store.list_sessions(username))
            continue
        if line.startswith("/open "):
            try:
                record = session.select(line[len("/open "):].strip())
            except SessionNotFound as exc:
                console.print(theme.err(f"Session not found: {_esc(str(exc.args[0]))}"))
                continue
            console.print(theme.info(f"Opened {record.title}"))
            _print_history(session.messages)
            continue
        if not line and not session.has_pending:
            continue
        _turn(line)


# ---------------------------------------------------------------------------
# sessions (group)
# ---------------------------------------------------------------------------


def _print_session_table(records: list[Any]) -> None:
    if not records:
        console.print(theme.info("No sessions yet."))
        return
    t = theme.make_table()
    t.add_column("ID", style=f"bold {theme.RED}", no_wrap=True)
    t.add_column("Title")
    t.add_column("Agent")
    t.add_column("Created", no_wrap=True)
    t.add_column("Messages", justify="right")
    for r in records:
        t.add_row(r.id, _esc(r.title), r.agent, r.created_at[:16].replace("T", " "), str(r.message_count))
    console.print(Padding(t, (0, 0, 0, 2)))


def _print_history(messages: list[Any]) -> None:
    for m in messages:
        who = "You" if m.role == "user" else "Model"
        style = theme.SLATE if m.role == "user" else theme.RED
        console.print(f"  [bold {style}]{who}[/bold {style}] [{theme.MUTED}]{m.timestamp[:16].replace('T', ' ')}[/{theme.MUTED}]")
        if m.attachments:
            console.print(theme.info(", ".join(f"{a.kind}: {a.name}" for a in m.attachments)))
        if m.error:
            console.print(theme.err(_esc(m.text)))
        else:
            console.print(Padding(_esc(m.text), (0, 0, 0, 4)))
        _render_charts(m.charts or [])


@cli.group()
def sessions() -> None:
    """List, show and delete stored chat sessions."""


@sessions.command("list")
@click.option("--user", "-u", "username", default=_default_user, show_default="$USER", help="Username whose sessions to list.")
def sessions_list(username: str) -> None:
    """List sessions, newest first."""
    from .store import SessionStore

    store = SessionStore.from_config(get_config())
    theme.section(f"Sessions · @{username}", console, "01", uppercase=False)
    _print_session_table(store.list_sessions(username))


@sessions.command("show")
@click.argument("session_id")
def sessions_show(session_id: str) -> None:
    """Print the stored messages of a session."""
    from .store import SessionNotFound, SessionStore

    store = SessionStore.from_config(get_config())
    try:
        record = store.get_session(session_id)
        messages = store.load_messages(session_id)
    except SessionNotFound:
        raise click.ClickException(f"Session not found: {session_id}")
    theme.section(record.title, console, "01", uppercase=False)
    _print_history(messages)


@sessions.command("delete")
@click.argument("session_id")
@click.option("--yes", "assume_yes", is_flag=True, default=False, help="Delete without confirmation.")
def sessions_delete(session_id: str, assume_yes: bool) -> None:
    """Delete a session and its messages."""
    from .store import SessionNotFound, SessionStore

    store = SessionStore.from_config(get_config())
    try:
        record = store.get_session(session_id)
    except SessionNotFound:
        raise click.ClickException(f"Session not found: {session_id}")
    if not assume_yes and not click.confirm(f"Delete '{record.title}'?", default=False):
        console.print(theme.info("Cancelled."))
        return
    store.delete_session(session_id)
    console.print(theme.ok(f"Deleted {session_id}"))


# ---------------------------------------------------------------------------
# stats
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--column", "-c", default=None, help="Column to summarise and rank by.")
@click.option("--top", "-n", type=int, default=5, show_default=True, help="Number of top rows by --column.")
@click.option("--counts", type=int, default=0, show_default=True, help="Also show the N most frequent values of --column.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the report as JSON.")
def stats(file: Path, column: Optional[str], top: int, counts: int, as_json: bool) -> None:
    """Local statistics for a CSV file (no model call).

    \b
    Examples:
      ytchat stats videos.csv
      ytchat stats videos.csv -c viewCount -n 10
      ytchat stats videos.csv -c type --counts 5 --json
    """
    from .chat.loaders import AttachmentError
    from .chat.tools import format_number
    from .sdk import column_report

    try:
        report = column_report(file, column, top=top, counts=counts)
    except (AttachmentError, UnicodeDecodeError) as exc:
        raise click.ClickException(str(exc))

    if as_json:
        click.echo(json.dumps(report, indent=2, default=str, ensure_ascii=False))
        return

    theme.section(f"{report['file']} · {report['rows']:,} rows", console, "01", uppercase=False)
    console.print(Padding(_esc(report["summary"]), (0, 0, 0, 2)))

    if not column:
        return

    theme.section(f"Column · {column}", console, "02", uppercase=False)
    col_stats = report["stats"]
    if "error" in col_stats:
        console.print(theme.err(_esc(col_stats["error"])))
    else:
        t = theme.make_kv_table()
        for key in ("count", "mean", "median", "std", "min", "max"):
            t.add_row(key, format_number(col_stats[key]))
        console.print(Padding(t, (0, 0, 0, 2)))

    ranked = report["top"]
    if isinstance(ranked, dict):
        console.print(theme.err(_esc(ranked["error"])))
    elif ranked:
        t = theme.make_table(title=f"Top {len(ranked)} by {col_stats.get('column', column)}")
        for key in ranked[0]:
            t.add_column(str(key), overflow="fold")
        for row in ranked:
            t.add_row(*(_esc("" if v is None else str(v)) for v in row.values()))
        console.print(Padding(t, (0, 0, 0, 2)))

    if "value_counts" in report:
        freq = report["value_counts"]
        if isinstance(freq, dict):
            console.print(theme.err(_esc(freq["error"])))
        else:
            t = theme.make_table(title="Most frequent values")
            t.add_column("Value")
            t.add_column("Count", justify="right")
            for item in freq:
                t.add_row(_esc(str(item["value"])), str(item["count"]))
            console.print(Padding(t, (0, 0, 0, 2)))


# ---------------------------------------------------------------------------
# channel (group)
# ---------------------------------------------------------------------------


@cli.group()
def channel() -> None:
    """Work with YouTube channel export files."""


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Invalid JSON in {path.name}: {exc.msg}")


@channel.command("slice")
@click.argument("sample", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--handle", required=True, help="Channel handle, e.g. @veritasium.")
@click.option("--url", default=None, help="Channel URL (default: https://www.youtube.com/<handle>).")
@click.option("--max-videos", "-n", default="10", show_default=True, help="Number of videos to keep (clamped to 1..100).")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Output file (default: <handle>_channel_data.json).")
def channel_slice(sample: Path, handle: str, url: Optional[str], max_videos: str, output: Optional[Path]) -> None:
    """Write a channel export with the first N videos of SAMPLE."""
    from .chat.channel import channel_totals, clamp_video_count, slice_channel_sample

    raw = _read_json(sample)
    handle_clean = handle if handle.startswith("@") else f"@{handle}"
    url = url or f"https://www.youtube.com/{handle_clean}"
    n = clamp_video_count(max_videos)
    payload = slice_channel_sample(raw, handle=handle_clean, url=url, max_videos=n)

    safe = re.sub(r"[^A-Za-z0-9_-]", "", handle_clean) or "channel"
    target = output or Path(f"{safe}_channel_data.json")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")

    totals = channel_totals(payload)
    console.print(theme.ok(f"Wrote {totals['count']} videos to {target}"))
    if totals["count"] < n:
        console.print(theme.warn(f"Sample only has {totals['count']} videos (requested {n})."))


@channel.command("summary")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def channel_summary(file: Path) -> None:
    """Video count, view/like/comment totals and date range of an export."""
    from .chat.channel import channel_totals

    totals = channel_totals(_read_json(file))
    theme.section(file.name, console, "01", uppercase=False)
    t = theme.make_kv_table()
    t.add_row("videos", f"{totals['count']:,}")
    t.add_row("views", f"{totals['totals']['views']:,}")
    t.add_row("likes", f"{totals['totals']['likes']:,}")
    t.add_row("comments", f"{totals['totals']['comments']:,}")
    if totals["start_date"]:
        t.add_row("date range", f"{totals['start_date']} → {totals['end_date']}")
    console.print(Padding(t, (0, 0, 0, 2)))


# ---------------------------------------------------------------------------
# config (group)
# ---------------------------------------------------------------------------


@cli.group()
def config() -> None:
    """View and update YTCHAT configuration."""


@config.command("show")
def config_show() -> None:
    """Show current configuration.

    \b
    Examples:
      ytchat config show
    """
    from .utils.logging import get_current_log_file

    cfg = get_config()
    dump = cfg.model_dump()

    theme.section("Language Models", console, "01")
    t = theme.make_kv_table()
    t.add_row("lm", dump["lm"])
    t.add_row("image_lm", dump["image_lm"])
    t.add_row("api_base", dump["api_base"] or "[dim]provider default[/dim]")
    t.add_row("lm_temperature", str(dump["lm_temperature"]))
    t.add_row("request_timeout", f"{dump['request_timeout']}s")
    t.add_row("max_tool_rounds", str(dump["max_tool_rounds"]))
    api_key = dump["api_key"]
    if api_key:
        masked = api_key[:4] + "···" + api_key[-4:] if len(api_key) > 8 else "***"
    else:
        masked = "[dim]not set[/dim]"
    t.add_row("api_key", masked)
    console.print(t)

    theme.section("Chat", console, "02")
    t = theme.make_kv_table()
    t.add_row("agent_name", dump["agent_name"])
    t.add_row("system_prompt_path", str(dump["system_prompt_path"] or "[dim]none[/dim]"))
    t.add_row("routing_rules_path", str(dump["routing_rules_path"] or "[dim]built-in[/dim]"))
    t.add_row("slim_max_rows", str(dump["slim_max_rows"]))
    t.add_row("slim_text_chars", str(dump["slim_text_chars"]))
    t.add_row("max_base64_source_chars", f"{dump['max_base64_source_chars']:,}")
    console.print(t)

    theme.section("Paths", console, "03")
    t = theme.make_kv_table()
    t.add_row("home_dir", str(dump["home_dir"]))
    t.add_row("sessions_dir", str(cfg.sessions_dir))
    t.add_row("log_dir", str(cfg.log_dir))
    log_file = get_current_log_file()
    t.add_row("log_file", log_file.name if log_file else "[dim]file logging disabled[/dim]")
    console.print(t)
    console.print()


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set a configuration value persistently.

    Writes to <home_dir>/.env which is loaded on startup.
    Also sets the value in the current process environment.

    \b
    Examples:
      ytchat config set lm gemini/gemini-2.5-pro
      ytchat config set api_base http://localhost:11434
    """
    cfg = get_config()
    env_var = f"YTCHAT_{key.upper()}"

    known_fields = set(type(cfg).model_fields.keys())
    if key.lower() not in known_fields:
        raise click.ClickException(f"Unknown config key {key!r}. Known keys: {', '.join(sorted(known_fields))}")

    env_file = cfg.home_dir / ".env"
    cfg.home_dir.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_file.exists():
        for line in env_file.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                k, _, v = line.partition("=")
                existing[k.strip()] = v.strip()

    existing[env_var] = value
    lines = [f"{k}={v}" for k, v in sorted(existing.items())]
    env_file.write_text("\n".join(lines) + "\n", encoding="utf-8")

    os.environ[env_var] = value
    get_config.cache_clear()

    console.print(theme.ok(f"Set {key} = {value}"))
    console.print(theme.info(f"Saved to {env_file}"))
