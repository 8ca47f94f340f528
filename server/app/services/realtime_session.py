"""
OpenAI Realtime session for one call.

Owns the upstream websocket: connects, sends the single ``session.update``
that configures voice, codec, turn detection, instructions and tools, then
exposes typed send helpers and an async iterator over inbound events.

Audio passes through untouched: Twilio media streams and the Realtime
session both use G.711 mu-law, so no transcoding happens on this side.
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from app.config import settings
from app.services.context_resolver import ContextSnapshot
from app.services.errors import UpstreamConnectError
from app.services.scope import CallerKind
from app.services.system_prompts import build_instructions
from app.services.tool_definitions import TOOL_SCHEMAS

logger = logging.getLogger(__name__)

AUDIO_FORMAT = "g711_ulaw"


def build_session_config(context: ContextSnapshot, caller_kind: CallerKind) -> Dict[str, Any]:
    """Build the ``session`` object for ``session.update``."""
    return {
        "modalities": ["text", "audio"],
        "instructions": build_instructions(context, caller_kind),
        "voice": settings.OPENAI_VOICE,
        "input_audio_format": AUDIO_FORMAT,
        "output_audio_format": AUDIO_FORMAT,
        "input_audio_transcription": {"model": settings.OPENAI_TRANSCRIPTION_MODEL},
        "turn_detection": {
            "type": "server_vad",
            "threshold": settings.VAD_THRESHOLD,
            "prefix_padding_ms": settings.VAD_PREFIX_PADDING_MS,
            "silence_duration_ms": settings.VAD_SILENCE_DURATION_MS,
        },
        "tools": TOOL_SCHEMAS,
        "tool_choice": "auto",
        "temperature": settings.OPENAI_TEMPERATURE,
    }


class RealtimeSession:
    """
    Upstream leg of a call.

    Example usage:
        upstream = RealtimeSession(call_label="CA123")
        await upstream.open(context, CallerKind.MEMBER)
        async for event in upstream.events():
            ...
        await upstream.close()
    """

    def __init__(self, call_label: str = ""):
        self.call_label = call_label
        self.ws = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self.ws is not None and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    def _build_url(self) -> str:
        return f"{settings.OPENAI_REALTIME_URL}?model={settings.OPENAI_REALTIME_MODEL}"

    async def open(self, context: ContextSnapshot, caller_kind: CallerKind) -> None:
        """
        Connect and configure the Realtime session.

        Raises:
            UpstreamConnectError: If no API key is configured or the connection
                or configuration send fails
        """
        if not settings.OPENAI_API_KEY:
            logger.error("[REALTIME] OPENAI_API_KEY is not set")
            raise UpstreamConnectError("AI service not configured")

        headers = {
            "Authorization": f"Bearer {settings.OPENAI_API_KEY}",
            "OpenAI-Beta": "realtime=v1",
        }

        logger.info(f"[REALTIME] Connecting for call {self.call_label}")
        try:
            self.ws = await websockets.connect(
                self._build_url(),
                additional_headers=headers,
                open_timeout=settings.UPSTREAM_CONNECT_TIMEOUT_SECONDS,
            )
        except (OSError, TimeoutError, WebSocketException) as e:
            logger.error(f"[REALTIME] Connection failed for call {self.call_label}: {e}")
            raise UpstreamConnectError() from e

        config = build_session_config(context, caller_kind)
        if not await self._send({"type": "session.update", "session": config}):
            raise UpstreamConnectError()

        logger.info(
            f"[REALTIME] Session configured for call {self.call_label} "
            f"({len(config['tools'])} tools, caller={caller_kind.value})"
        )

    async def _send(self, event: Dict[str, Any]) -> bool:
        """Send one event. Returns False if the connection is gone."""
        if not self.is_open:
            return False
        try:
            await self.ws.send(json.dumps(event))
            return True
        except ConnectionClosed as e:
            logger.info(f"[REALTIME] Connection closed while sending {event.get('type')}: {e}")
            self._closed = True
            return False

    async def send_audio(self, payload: str) -> bool:
        """Append one base64 audio frame to the input buffer."""
        return await self._send({"type": "input_audio_buffer.append", "audio": payload})

    async def send_function_output(self, call_id: Optional[str], output: str) -> bool:
        return await self._send(
            {
                "type": "conversation.item.create",
                "item": {
                    "type": "function_call_output",
                    "call_id": call_id,
                    "output": output,
                },
            }
        )

    async def request_response(self) -> bool:
        return await self._send({"type": "response.create"})

    async def cancel_response(self) -> bool:
        return await self._send({"type": "response.cancel"})

    async def events(self) -> AsyncIterator[Dict[str, Any]]:
        """
        Yield inbound events until the connection closes.

        Frames that are not JSON objects are logged and skipped.
        """
        if self.ws is None:
            return
        try:
            async for message in self.ws:
                try:
                    event = json.loads(message)
                except (TypeError, ValueError):
                    logger.warning(f"[REALTIME] Ignoring non-JSON frame on call {self.call_label}")
                    continue
                if isinstance(event, dict):
                    yield event
        except ConnectionClosed as e:
            logger.info(f"[REALTIME] Connection closed for call {self.call_label}: {e}")
        finally:
            self._closed = True

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        self._closed = True
        if self.ws is None:
            return
        try:
            await self.ws.close()
        except (OSError, WebSocketException) as e:
            logger.debug(f"[REALTIME] Error closing connection for call {self.call_label}: {e}")
        logger.info(f"[REALTIME] Closed for call {self.call_label}")
