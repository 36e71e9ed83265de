# ytchat/sdk.py
"""
YTCHAT Python SDK -- programmatic access without the CLI.

Core functions::

    from ytchat.sdk import open_session, column_report, health

    session = open_session("ana", attachments=["videos.csv"])
    reply   = session.send("Which videos have the best engagement?")
    report  = column_report("videos.csv", "viewCount", top=5)
    status  = health()

LiteLLM is only imported when a model call is made, so the local statistics
helpers work without any model configured.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence

if TYPE_CHECKING:
    from ytchat.chat.session import ChatSession, UpdateCallback

_configured: bool = False


def _ensure_configured() -> None:
    """Keep LiteLLM quiet and install a fresh token tracker. Runs once."""
    global _configured
    if _configured:
        return

    import os

    logging.getLogger("LiteLLM").setLevel(logging.ERROR)
    logging.getLogger("litellm").setLevel(logging.ERROR)
    os.environ.setdefault("LITELLM_LOG", "ERROR")

    from .metrics import TokenTracker, set_tracker

    set_tracker(TokenTracker())
    _configured = True


# ---------------------------------------------------------------------------
# open_session
# ---------------------------------------------------------------------------


def open_session(
    username: str,
    *,
    full_name: str = "",
    attachments: Sequence[str | Path] | None = None,
    session_id: str | None = None,
    model: Any = None,
    store: Any = None,
    on_update: UpdateCallback | None = None,
) -> ChatSession:
    """Create a chat session wired to the configured model and store.

    Parameters
    ----------
    username:
        Owner of the session; sessions are listed per user.
    full_name:
        Optional display name sent to the model in the ``User:`` header.
    attachments:
        Files to attach before the first message (CSV, channel JSON, images).
        Files that fail to load end up in ``session.notices``.
    session_id:
        Resume a stored session instead of starting a new one.
    model, store:
        Overrides for the model client and session store (tests, custom
        backends). Defaults come from :func:`ytchat.config.get_config`.
    on_update:
        Called with the assistant message while it is being produced.

    Returns
    -------
    ChatSession
    """
    from .chat.prompts import load_system_prompt
    from .chat.session import ChatSession as _ChatSession
    from .config import get_config

    cfg = get_config()
    if model is None:
        _ensure_configured()
        from .model import ModelClient

        model = ModelClient.from_config(cfg, system_prompt=load_system_prompt(cfg.system_prompt_path))
    if store is None:
        from .store import SessionStore

        store = SessionStore.from_config(cfg)

    session = _ChatSession(model, store, username, full_name=full_name, config=cfg, on_update=on_update)
    if session_id:
        session.select(session_id)
    for path in attachments or []:
        session.attach_file(path)
    return session


# ---------------------------------------------------------------------------
# column_report
# ---------------------------------------------------------------------------


def column_report(path: str | Path, column: str | None = None, *, top: int = 5, counts: int = 0) -> dict[str, Any]:
    """Local statistics for a CSV file, no model involved.

    Parameters
    ----------
    path:
        CSV file with a header row.
    column:
        Column to summarise and rank by. Without it only the dataset summary
        is returned.
    top:
        Number of top rows by *column* to include.
    counts:
        When > 0, also include the *counts* most frequent values of *column*.

    Returns
    -------
    dict
        Keys: ``"file"``, ``"rows"``, ``"columns"``, ``"summary"``, and with a
        column also ``"stats"``, ``"top"`` and optionally ``"value_counts"``.
        Tool errors are reported in place as ``{"error": ...}``.
    """
    from .chat.loaders import parse_csv
    from .chat.tools import column_stats, compute_dataset_summary, top_n, value_counts

    p = Path(path)
    attachment = parse_csv(p.read_text(encoding="utf-8"), name=p.name)
    dataset = attachment.dataset
    report: dict[str, Any] = {
        "file": p.name,
        "rows": len(dataset),
        "columns": dataset.headers,
        "summary": compute_dataset_summary(dataset),
    }
    if column:
        report["stats"] = column_stats(dataset, column)
        report["top"] = top_n(dataset, column, n=top)
        if counts > 0:
            report["value_counts"] = value_counts(dataset, column, top_n=counts)
    return report


# ---------------------------------------------------------------------------
# health
# ---------------------------------------------------------------------------


def health() -> dict[str, Any]:
    """Report configuration status. Does NOT make a model call."""
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as _pkg_version

    from .config import get_config

    try:
        version = _pkg_version("ytchat")
    except PackageNotFoundError:
        from . import __version__ as version

    cfg = get_config()
    return {
        "version": version,
        "configured": bool(cfg.api_key),
        "lm_model": cfg.lm,
        "image_model": cfg.image_lm,
        "api_base": cfg.api_base,
        "home_dir": str(cfg.home_dir),
        "system_prompt": str(cfg.system_prompt_path) if cfg.system_prompt_path else None,
        "routing_rules": str(cfg.routing_rules_path) if cfg.routing_rules_path else None,
    }
