# ytchat/config.py
"""
YTCHAT Configuration — Single source of truth via Pydantic Settings.

Resolution order: CLI flags > env vars (YTCHAT_*) > config file > defaults.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class YtchatConfig(BaseSettings):
    """Central configuration for YTCHAT."""

    model_config = SettingsConfigDict(
        env_prefix="YTCHAT_",
        # Later files win: a project .env overrides the one `ytchat config set` writes.
        env_file=(Path.home() / ".ytchat" / ".env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- LLM ---
    lm: str = "gemini/gemini-2.5-flash"
    image_lm: str = "gemini/gemini-3-pro-image-preview"
    api_key: str = ""
    api_base: str = ""
    lm_temperature: float = 0.7
    request_timeout: int = 120
    max_tool_rounds: int = 4

    # --- Chat ---
    agent_name: str = "lisa"
    system_prompt_path: Path | None = None
    routing_rules_path: Path | None = None

    # --- Dataset context ---
    # Rows and per-cell text length of the key-columns CSV sent in every prompt.
    slim_max_rows: int = 500
    slim_text_chars: int = 140
    max_base64_source_chars: int = 500_000

    # --- Paths ---
    home_dir: Path = Field(default_factory=lambda: Path.home() / ".ytchat")

    @property
    def sessions_dir(self) -> Path:
        return self.home_dir / "sessions"

    @property
    def log_dir(self) -> Path:
        return self.home_dir / "logs"


@lru_cache(maxsize=1)
def get_config() -> YtchatConfig:
    """Return the global config singleton."""
    return YtchatConfig()
