"""Shared helpers for YTCHAT."""

from .logging import get_logger, log_llm_response, log_prompt, setup_logging

__all__ = ["get_logger", "setup_logging", "log_prompt", "log_llm_response"]
