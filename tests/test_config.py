# tests/test_config.py
"""Tests for YtchatConfig — Pydantic Settings single source of truth."""

from pathlib import Path


class TestYtchatConfig:
    """Test YtchatConfig defaults and overrides."""

    def test_default_values(self, monkeypatch):
        """Config should have sensible defaults without any env vars."""
        from ytchat.config import YtchatConfig

        monkeypatch.delenv("YTCHAT_LM", raising=False)
        cfg = YtchatConfig(_env_file=None)
        assert cfg.lm == "gemini/gemini-2.5-flash"
        assert cfg.image_lm == "gemini/gemini-3-pro-image-preview"
        assert cfg.agent_name == "lisa"
        assert cfg.slim_max_rows == 500
        assert cfg.slim_text_chars == 140
        assert cfg.max_base64_source_chars == 500_000
        assert cfg.max_tool_rounds == 4
        assert cfg.routing_rules_path is None

    def test_env_override(self, monkeypatch):
        """Environment variables with YTCHAT_ prefix override defaults."""
        from ytchat.config import YtchatConfig

        monkeypatch.setenv("YTCHAT_LM", "openai/gpt-4o")
        monkeypatch.setenv("YTCHAT_SLIM_MAX_ROWS", "50")
        cfg = YtchatConfig(_env_file=None)
        assert cfg.lm == "openai/gpt-4o"
        assert cfg.slim_max_rows == 50

    def test_home_dir_default(self, monkeypatch):
        from ytchat.config import YtchatConfig

        monkeypatch.delenv("YTCHAT_HOME_DIR", raising=False)
        cfg = YtchatConfig(_env_file=None)
        assert cfg.home_dir == Path.home() / ".ytchat"

    def test_derived_paths(self, tmp_path):
        from ytchat.config import YtchatConfig

        cfg = YtchatConfig(_env_file=None, home_dir=tmp_path)
        assert cfg.sessions_dir == tmp_path / "sessions"
        assert cfg.log_dir == tmp_path / "logs"

    def test_env_file_is_read(self, tmp_path, monkeypatch):
        from ytchat.config import YtchatConfig

        monkeypatch.delenv("YTCHAT_AGENT_NAME", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("YTCHAT_AGENT_NAME=bart\n", encoding="utf-8")
        cfg = YtchatConfig(_env_file=env_file)
        assert cfg.agent_name == "bart"

    def test_get_config_is_cached(self):
        from ytchat.config import get_config

        get_config.cache_clear()
        try:
            assert get_config() is get_config()
        finally:
            get_config.cache_clear()
