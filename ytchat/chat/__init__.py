"""Chat sessions: routing, prompt assembly, local tools and attachments."""

from .control_plane import IntentRouter, RoutingContext, RoutingRules, Strategy, classify
from .session import ChatSession, SessionState

__all__ = [
    "ChatSession",
    "SessionState",
    "IntentRouter",
    "RoutingContext",
    "RoutingRules",
    "Strategy",
    "classify",
]
