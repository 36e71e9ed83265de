"""
YTCHAT Package - YouTube AI Chat Assistant

Conversational analysis of YouTube channel exports and tabular CSV data
with a hosted language model, local statistics tools and persisted
chat sessions.

Main Components:
    - ytchat.chat: Intent routing, prompt assembly, tools and chat sessions
    - ytchat.model: LiteLLM-backed model client
    - ytchat.store: JSON-file session store
    - ytchat.cli: Terminal interface
"""

from .sdk import column_report, open_session

__version__ = "0.3.0"

__all__ = ["open_session", "column_report", "__version__"]
