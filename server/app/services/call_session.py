"""
Call session: bridges one Twilio media stream to one OpenAI Realtime session.

Flow:
    1. Twilio connects; the session waits for ``start``
    2. ``start`` resolves the care group and loads its context snapshot
    3. The Realtime session is opened and configured
    4. Audio is relayed both ways until ``stop`` or either side closes
    5. Both legs are closed together; in-flight function calls are cancelled

Setup failures close the Twilio leg with a policy or internal-error code and
never open an upstream connection.
"""

import asyncio
import json
import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Set

from fastapi import WebSocketDisconnect, status

from app.config import settings
from app.services.context_resolver import resolve_context
from app.services.database import query_session
from app.services.errors import (
    CallSetupError,
    MissingScopeError,
    ScopeNotFoundError,
    SessionStateError,
)
from app.services.realtime_session import RealtimeSession
from app.services.scope import merge_caller_parameters
from app.services.tool_router import ToolRouter

logger = logging.getLogger(__name__)


class CallState(str, Enum):
    INIT = "init"
    AWAITING_START = "awaiting_start"
    CONTEXT_RESOLVING = "context_resolving"
    FAILED_TERMINAL = "failed_terminal"
    UPSTREAM_CONNECTING = "upstream_connecting"
    UPSTREAM_READY = "upstream_ready"
    STREAMING = "streaming"
    FUNCTION_CALL_PENDING = "function_call_pending"
    CLOSING = "closing"
    CLOSED = "closed"


ALLOWED_TRANSITIONS: Dict[CallState, Set[CallState]] = {
    CallState.INIT: {CallState.AWAITING_START, CallState.CLOSING},
    CallState.AWAITING_START: {CallState.CONTEXT_RESOLVING, CallState.CLOSING},
    CallState.CONTEXT_RESOLVING: {
        CallState.FAILED_TERMINAL,
        CallState.UPSTREAM_CONNECTING,
        CallState.CLOSING,
    },
    CallState.UPSTREAM_CONNECTING: {
        CallState.FAILED_TERMINAL,
        CallState.UPSTREAM_READY,
        CallState.CLOSING,
    },
    CallState.UPSTREAM_READY: {CallState.STREAMING, CallState.CLOSING},
    CallState.STREAMING: {CallState.FUNCTION_CALL_PENDING, CallState.CLOSING},
    CallState.FUNCTION_CALL_PENDING: {CallState.STREAMING, CallState.CLOSING},
    CallState.FAILED_TERMINAL: {CallState.CLOSING},
    CallState.CLOSING: {CallState.CLOSED},
    CallState.CLOSED: set(),
}

# Media is only forwarded upstream in these states
RELAY_STATES = {CallState.STREAMING, CallState.FUNCTION_CALL_PENDING}


def _object(value: Any) -> Dict[str, Any]:
    """Treat a missing or non-object field of a Twilio frame as empty."""
    return value if isinstance(value, dict) else {}


def assistant_transcript(event: Dict[str, Any]) -> str:
    """Join the audio transcripts of a ``response.done`` event's output items."""
    parts = []
    for item in (event.get("response") or {}).get("output") or []:
        for content in item.get("content") or []:
            if content.get("transcript"):
                parts.append(content["transcript"].strip())
    return " ".join(parts)


class CallSession:
    """
    One phone call.

    Args:
        telephony: Accepted websocket from Twilio (Starlette ``WebSocket`` API:
            ``iter_text``, ``send_text``, ``close``)
        query_params: Query parameters from the websocket URL
        session_factory: Callable returning an async context manager that
            yields a read-only database session
        upstream_factory: Callable taking a call label and returning an
            unopened upstream session (defaults to ``RealtimeSession``)
    """

    def __init__(
        self,
        telephony,
        query_params: Optional[Mapping[str, str]] = None,
        session_factory: Callable = query_session,
        upstream_factory: Callable[[str], Any] = RealtimeSession,
    ):
        self.telephony = telephony
        self.query_params = dict(query_params or {})
        self.session_factory = session_factory
        self.upstream_factory = upstream_factory

        self.state = CallState.INIT
        self.call_sid: Optional[str] = None
        self.stream_sid: Optional[str] = None
        self.scope_id: Optional[str] = None
        self.upstream = None
        self.router: Optional[ToolRouter] = None

        self.frames_forwarded = 0
        self.frames_dropped = 0
        self.audio_deltas_sent = 0
        self.close_reason: Optional[str] = None

        self._tasks: Set[asyncio.Task] = set()
        self._function_tasks: Set[asyncio.Task] = set()
        self._pending_calls = 0
        self._telephony_closed = False
        self._teardown = asyncio.Event()
        self._started_at = time.time()

    @property
    def call_label(self) -> str:
        return self.call_sid or self.stream_sid or "unknown"

    def _transition(self, new_state: CallState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise SessionStateError(f"Illegal transition {self.state.value} -> {new_state.value}")
        logger.debug(f"[CALL] {self.call_label}: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        return task

    def _request_teardown(self, source: str) -> None:
        if not self._teardown.is_set():
            logger.info(f"[CALL] {self.call_label}: teardown requested by {source}")
            self._teardown.set()

    async def run(self) -> None:
        """Serve the call until either leg ends, then close both."""
        self._transition(CallState.AWAITING_START)
        self._spawn(self._read_telephony())
        try:
            await self._teardown.wait()
        finally:
            await self.close()

    # ------------------------------------------------------------------
    # Telephony leg
    # ------------------------------------------------------------------

    async def _read_telephony(self) -> None:
        """
        Receive events from the Twilio media stream.

        Handles:
        - connected / mark: logged
        - start: resolve scope and context, open upstream (in its own task so
          frames arriving meanwhile are drained and dropped)
        - media: forward audio upstream once streaming
        - stop: end the call
        """
        try:
            async for message in self.telephony.iter_text():
                try:
                    data = json.loads(message)
                except ValueError:
                    logger.warning(f"[CALL] {self.call_label}: ignoring non-JSON frame")
                    continue

                if not isinstance(data, dict):
                    logger.warning(f"[CALL] {self.call_label}: ignoring non-object frame")
                    continue

                event = data.get("event")

                if event == "media":
                    await self._handle_media(_object(data.get("media")))

                elif event == "start":
                    if self.state != CallState.AWAITING_START:
                        logger.warning(f"[CALL] {self.call_label}: duplicate start ignored")
                        continue
                    self._transition(CallState.CONTEXT_RESOLVING)
                    self._spawn(self._setup(_object(data.get("start"))))

                elif event == "stop":
                    logger.info(f"[CALL] {self.call_label}: stream stopped by Twilio")
                    break

                elif event == "connected":
                    logger.info("[CALL] Twilio media stream connected")

                elif event == "mark":
                    logger.debug(f"[CALL] {self.call_label}: mark {_object(data.get('mark')).get('name')}")

                else:
                    logger.info(f"[CALL] {self.call_label}: ignoring event {event!r}")

        except WebSocketDisconnect:
            logger.info(f"[CALL] {self.call_label}: Twilio disconnected")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[CALL] {self.call_label}: error reading Twilio stream: {e}", exc_info=True)
        finally:
            self._request_teardown("telephony")

    async def _setup(self, start: Dict[str, Any]) -> None:
        """Run call setup; any failure ends the call."""
        try:
            if not await self._handle_start(start):
                self._request_teardown("setup failure")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[CALL] {self.call_label}: call setup error: {e}", exc_info=True)
            self._request_teardown("setup error")

    async def _handle_start(self, start: Dict[str, Any]) -> bool:
        """
        Bind the call to a care group and open the upstream session.

        Returns:
            True if the call is streaming, False if setup failed
        """
        self.call_sid = start.get("callSid")
        self.stream_sid = start.get("streamSid")
        logger.info(f"[CALL] Stream started: call={self.call_sid} stream={self.stream_sid}")

        try:
            params = merge_caller_parameters(_object(start.get("customParameters")), self.query_params)
            scope_id = params.scope_id
            if not scope_id:
                raise MissingScopeError()

            context = await resolve_context(self.session_factory, scope_id)
            if context is None:
                raise ScopeNotFoundError()

            self._transition(CallState.UPSTREAM_CONNECTING)
            self.upstream = self.upstream_factory(self.call_label)
            await self.upstream.open(context, params.caller_kind)

        except CallSetupError as e:
            await self._fail(e)
            return False

        self.scope_id = scope_id
        self.router = ToolRouter(session_factory=self.session_factory, scope_id=scope_id)
        self._transition(CallState.UPSTREAM_READY)
        self._spawn(self._pump_upstream())
        self._transition(CallState.STREAMING)

        logger.info(
            f"[CALL] {self.call_label}: streaming for care group {context.group_name} "
            f"(caller={params.caller_id}, kind={params.caller_kind.value})"
        )
        return True

    async def _fail(self, error: CallSetupError) -> None:
        logger.warning(f"[CALL] {self.call_label}: setup failed: {error.reason}")
        self._transition(CallState.FAILED_TERMINAL)
        self.close_reason = error.reason
        await self._close_telephony(code=error.code, reason=error.reason)

    async def _handle_media(self, media: Dict[str, Any]) -> None:
        if self.state not in RELAY_STATES:
            self.frames_dropped += 1
            return

        payload = media.get("payload")
        if not payload or not isinstance(payload, str):
            return

        if await self.upstream.send_audio(payload):
            self.frames_forwarded += 1
        else:
            self.frames_dropped += 1

    async def _send_to_twilio(self, message: Dict[str, Any]) -> None:
        await self.telephony.send_text(json.dumps(message))

    async def _close_telephony(self, code: int = status.WS_1000_NORMAL_CLOSURE, reason: str = None):
        if self._telephony_closed:
            return
        self._telephony_closed = True
        try:
            await self.telephony.close(code=code, reason=reason)
        except (RuntimeError, WebSocketDisconnect) as e:
            # Already closed by the remote side
            logger.debug(f"[CALL] {self.call_label}: Twilio socket already closed: {e}")

    # ------------------------------------------------------------------
    # Upstream leg
    # ------------------------------------------------------------------

    async def _pump_upstream(self) -> None:
        """Relay upstream events until the Realtime session closes."""
        try:
            async for event in self.upstream.events():
                await self._handle_upstream_event(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[CALL] {self.call_label}: upstream relay error: {e}", exc_info=True)
        finally:
            self._request_teardown("upstream")

    async def _handle_upstream_event(self, event: Dict[str, Any]) -> None:
        event_type = event.get("type")

        if event_type == "response.audio.delta":
            delta = event.get("delta")
            if delta and self.stream_sid:
                await self._send_to_twilio(
                    {"event": "media", "streamSid": self.stream_sid, "media": {"payload": delta}}
                )
                self.audio_deltas_sent += 1

        elif event_type == "response.function_call_arguments.done":
            self._start_function_call(event.get("call_id"), event.get("name"), event.get("arguments"))

        elif event_type == "input_audio_buffer.speech_started":
            await self._handle_barge_in()

        elif event_type == "conversation.item.input_audio_transcription.completed":
            logger.info(f"[CALL] {self.call_label} caller: {event.get('transcript', '').strip()}")

        elif event_type == "response.done":
            transcript = assistant_transcript(event)
            if transcript:
                logger.info(f"[CALL] {self.call_label} assistant: {transcript}")

        elif event_type in ("session.created", "session.updated"):
            logger.info(f"[CALL] {self.call_label}: {event_type}")

        elif event_type == "error":
            logger.error(f"[CALL] {self.call_label}: upstream error: {event.get('error')}")

    async def _handle_barge_in(self) -> None:
        """Caller started talking: stop assistant playback."""
        if not settings.ENABLE_BARGE_IN:
            return
        logger.info(f"[CALL] {self.call_label}: barge-in detected")
        if self.stream_sid:
            await self._send_to_twilio({"event": "clear", "streamSid": self.stream_sid})
        await self.upstream.cancel_response()

    # ------------------------------------------------------------------
    # Function calls
    # ------------------------------------------------------------------

    def _start_function_call(self, call_id: Optional[str], name: Optional[str], arguments: Any):
        """Run a function call without blocking the audio relay."""
        logger.info(f"[CALL] {self.call_label}: function call {name} ({call_id})")
        self._pending_calls += 1
        if self.state == CallState.STREAMING:
            self._transition(CallState.FUNCTION_CALL_PENDING)

        task = asyncio.create_task(self._run_function_call(call_id, name, arguments))
        self._function_tasks.add(task)
        task.add_done_callback(self._function_tasks.discard)

    async def _run_function_call(self, call_id: Optional[str], name: Optional[str], arguments: Any):
        try:
            await self.router.dispatch(self.upstream, call_id, name or "", arguments)
        finally:
            self._pending_calls -= 1
            if self._pending_calls == 0 and self.state == CallState.FUNCTION_CALL_PENDING:
                self._transition(CallState.STREAMING)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close both legs and cancel outstanding work. Safe to call twice."""
        if self.state in (CallState.CLOSING, CallState.CLOSED):
            return
        self._transition(CallState.CLOSING)
        self._teardown.set()

        current = asyncio.current_task()
        pending = [t for t in self._tasks | self._function_tasks if t is not current and not t.done()]
        for task in pending:
            task.cancel()

        if self.upstream is not None:
            await self.upstream.close()
        await self._close_telephony()

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        self._transition(CallState.CLOSED)
        logger.info(
            f"[CALL] {self.call_label} closed after {time.time() - self._started_at:.1f}s: "
            f"{self.frames_forwarded} frames forwarded, {self.frames_dropped} dropped, "
            f"{self.audio_deltas_sent} audio deltas sent"
        )
