"""Webhook endpoints for Twilio."""

import logging

from app.config import settings
from app.services.caller_lookup import identify_caller
from app.services.database import get_session_factory
from app.services.scope import merge_caller_parameters
from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import Response
from twilio.twiml.voice_response import Connect, VoiceResponse

logger = logging.getLogger(__name__)

router = APIRouter()

NO_SCOPE_MESSAGE = (
    "Sorry, we could not find a care group for this call. Please contact your care team. Goodbye."
)

UNKNOWN_CALLER_MESSAGE = (
    "I'm sorry, but this phone number is not recognized. "
    "Please contact your care team to register your phone number. Goodbye."
)


def media_stream_url() -> str:
    """WebSocket URL for the media stream, derived from BASE_URL."""
    host = settings.BASE_URL.replace("https://", "").replace("http://", "").rstrip("/")
    return f"wss://{host}/api/v1/voice/media-stream"


def _hang_up(message: str) -> Response:
    response = VoiceResponse()
    response.say(message)
    response.hangup()
    return Response(content=str(response), media_type="application/xml")


@router.post("/incoming-call")
async def handle_incoming_call(
    request: Request,
    From: str = Form(None),
    To: str = Form(None),
    CallSid: str = Form(None),
    session_factory=Depends(get_session_factory),
):
    """
    Twilio webhook for incoming calls.
    Returns TwiML with <Connect><Stream> to the media stream WebSocket.

    The care group comes from the webhook URL's query string when it names one
    (``scopeId``, or ``scopeIds`` for callers in several groups). Otherwise the
    caller is identified by the ``From`` number: a care recipient's phone maps
    to their group, a member's phone to their groups, with ``defaultScopeId``
    as the preferred one. The result is passed to the stream as custom
    parameters.

    Args:
        From: Caller's phone number (E.164 format)
        To: Twilio phone number being called
        CallSid: Unique identifier for the call

    Returns:
        TwiML XML response
    """
    params = merge_caller_parameters(None, request.query_params)
    scope_id = params.scope_id
    caller_id = params.caller_id or From
    caller_kind = params.caller_kind

    query = request.query_params
    if From and not query.get("scopeId") and not query.get("scopeIds"):
        try:
            match = await identify_caller(session_factory, From, query.get("defaultScopeId"))
        except Exception as e:
            logger.error(f"Caller lookup failed for call {CallSid}: {e}", exc_info=True)
            return _hang_up(NO_SCOPE_MESSAGE)

        if match is None:
            logger.warning(f"Unrecognized caller {From} on call {CallSid}, hanging up")
            return _hang_up(UNKNOWN_CALLER_MESSAGE)

        scope_id = match.scope_id
        caller_id = params.caller_id or match.caller_id
        caller_kind = match.caller_kind

    logger.info(f"Incoming call - From: {From}, To: {To}, CallSid: {CallSid}, scope: {scope_id}")

    if not scope_id:
        logger.warning(f"No care group for call {CallSid}, hanging up")
        return _hang_up(NO_SCOPE_MESSAGE)

    response = VoiceResponse()
    connect = Connect()
    stream = connect.stream(url=media_stream_url())

    # Passed to the WebSocket handler as start.customParameters
    stream.parameter(name="scopeId", value=scope_id)
    if caller_id:
        stream.parameter(name="callerId", value=caller_id)
    stream.parameter(name="callerKind", value=caller_kind.value)

    response.append(connect)

    logger.debug(f"Generated TwiML for call {CallSid}")
    return Response(content=str(response), media_type="application/xml")


@router.post("/call-status")
async def handle_call_status(
    CallSid: str = Form(...),
    CallStatus: str = Form(...),
    CallDuration: str = Form(None),
    From: str = Form(None),
    To: str = Form(None),
):
    """
    Twilio call status callback webhook.

    Call statuses: queued, ringing, in-progress, completed, busy, no-answer,
    canceled, failed. Nothing is persisted; updates are logged.
    """
    logger.info(
        f"Call status update - CallSid: {CallSid}, Status: {CallStatus}, Duration: {CallDuration}s"
    )
    return {"status": "received"}
