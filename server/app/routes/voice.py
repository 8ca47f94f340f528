"""
Voice call WebSocket endpoint.

Twilio Media Streams connect here after the incoming-call webhook returns
``<Connect><Stream>``. Each connection becomes one CallSession bridging the
caller to an OpenAI Realtime session.

Architecture:
    Twilio WebSocket ↔ CallSession ↔ OpenAI Realtime WebSocket
                           ↓
                      ToolRouter → read-only care tools
"""

import logging

from app.services.call_session import CallSession
from fastapi import APIRouter, WebSocket

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/media-stream")
async def handle_media_stream(websocket: WebSocket):
    """
    Main WebSocket handler for Twilio Media Streams.

    Query parameters (``scopeId``, ``callerId``, ``callerKind``, ``scopeIds``,
    ``defaultScopeId``) are fallbacks for the ``customParameters`` carried in
    the ``start`` event.
    """
    await websocket.accept()
    logger.info("WebSocket connection accepted")

    session = CallSession(websocket, query_params=websocket.query_params)
    await session.run()

    logger.info(f"Call session ended: {session.call_label} ({session.state.value})")
