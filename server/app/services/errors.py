"""Exceptions raised by the voice bridge."""

from fastapi import status


class CallSetupError(Exception):
    """Terminal failure before the AI leg is ready.

    Carries the close reason and code sent on the telephony websocket.
    """

    reason = "Call setup failed"
    code = status.WS_1011_INTERNAL_ERROR

    def __init__(self, reason: str = None, code: int = None):
        if reason is not None:
            self.reason = reason
        if code is not None:
            self.code = code
        super().__init__(self.reason)


class MissingScopeError(CallSetupError):
    reason = "No care group id provided"
    code = status.WS_1008_POLICY_VIOLATION


class ScopeNotFoundError(CallSetupError):
    reason = "Care group not found"
    code = status.WS_1008_POLICY_VIOLATION


class ContextResolutionError(CallSetupError):
    reason = "Care group lookup failed"
    code = status.WS_1011_INTERNAL_ERROR


class UpstreamConnectError(CallSetupError):
    reason = "AI service unavailable"
    code = status.WS_1011_INTERNAL_ERROR


class ReadOnlyViolationError(Exception):
    """A query session attempted something other than a SELECT."""


class SessionStateError(Exception):
    """Illegal call session state transition."""
