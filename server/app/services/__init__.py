"""
Services package for the care group voice bridge.
"""

from .call_session import CallSession, CallState
from .context_resolver import ContextSnapshot, resolve_context
from .realtime_session import RealtimeSession
from .tool_router import ToolRouter

__all__ = [
    "CallSession",
    "CallState",
    "ContextSnapshot",
    "resolve_context",
    "RealtimeSession",
    "ToolRouter",
]
