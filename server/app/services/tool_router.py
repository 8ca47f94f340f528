"""
Tool router for executing function calls from the Realtime session.

Routes function calls to the read-only care tools, opens a short-lived
read-only database session per call, and always produces a speakable string.
"""

import json
import logging
from typing import Any, Callable, Dict, Optional

from app.services.tool_definitions import TOOL_REGISTRY

logger = logging.getLogger(__name__)

UNKNOWN_FUNCTION_RESULT = "Unknown function requested."
GENERIC_FAILURE_RESULT = "Sorry, I could not retrieve that information at this time."


def _camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def parse_arguments(raw_args: Any) -> Dict[str, Any]:
    """
    Parse a function call's argument payload defensively.

    Absent, malformed, or non-object JSON degrades to an empty argument set.
    """
    if raw_args is None or raw_args == "":
        return {}
    if isinstance(raw_args, dict):
        return raw_args
    try:
        parsed = json.loads(raw_args)
    except (TypeError, ValueError):
        logger.warning(f"[TOOLS] Unparseable function arguments: {raw_args!r}")
        return {}
    if not isinstance(parsed, dict):
        logger.warning(f"[TOOLS] Function arguments are not an object: {raw_args!r}")
        return {}
    return parsed


class ToolRouter:
    """
    Routes function calls to care tools for one care group.

    Responsibilities:
    - Map function names to tools via TOOL_REGISTRY
    - Extract only the arguments each tool's schema declares
    - Provide a read-only database session per call
    - Never raise: failures become apology strings

    Example usage:
        router = ToolRouter(session_factory=query_session, scope_id="grp-1")
        text = await router.execute("get_tasks", '{"status": "open"}')
    """

    def __init__(self, session_factory: Callable, scope_id: str):
        """
        Initialize tool router.

        Args:
            session_factory: Callable returning an async context manager that
                yields a read-only session
            scope_id: Care group every query is filtered to
        """
        self.session_factory = session_factory
        self.scope_id = scope_id
        self.tools = TOOL_REGISTRY

        logger.info(f"ToolRouter initialized with {len(self.tools)} tools for {scope_id}")

    def _tool_kwargs(self, argument_names, args: Dict[str, Any]) -> Dict[str, Any]:
        kwargs = {}
        for name in argument_names:
            value = args.get(name)
            if value is None:
                value = args.get(_camel_case(name))
            if value is not None:
                kwargs[name] = value if isinstance(value, str) else str(value)
        return kwargs

    async def execute(self, function_name: str, raw_args: Any = None) -> str:
        """
        Execute a tool by name.

        Args:
            function_name: Name of function to execute
            raw_args: JSON string (or dict) of arguments

        Returns:
            Speakable result text; never raises
        """
        tool = self.tools.get(function_name)
        if not tool:
            logger.warning(f"[TOOLS] Unknown function requested: {function_name}")
            return UNKNOWN_FUNCTION_RESULT

        try:
            kwargs = self._tool_kwargs(tool.argument_names, parse_arguments(raw_args))
            logger.info(f"[TOOLS] Executing {function_name} with args: {kwargs}")

            async with self.session_factory() as db:
                result = await tool.handler(db, self.scope_id, **kwargs)

            if not result:
                logger.warning(f"[TOOLS] {function_name} produced empty result")
                return GENERIC_FAILURE_RESULT
            return result

        except Exception as e:
            logger.error(f"[TOOLS] Error executing {function_name}: {e}", exc_info=True)
            return GENERIC_FAILURE_RESULT

    async def dispatch(
        self, upstream, call_id: Optional[str], function_name: str, raw_args: Any = None
    ) -> str:
        """
        Execute a function call and answer it on the Realtime session.

        Sends exactly one ``function_call_output`` item echoing ``call_id``,
        followed by ``response.create`` so the assistant keeps talking. If the
        upstream has already closed the reply is discarded.

        Returns:
            The result text
        """
        result = await self.execute(function_name, raw_args)

        try:
            sent = await upstream.send_function_output(call_id, result)
            if sent:
                await upstream.request_response()
            else:
                logger.info(f"[TOOLS] Upstream closed, discarding result for call {call_id}")
        except Exception as e:
            logger.warning(f"[TOOLS] Could not deliver result for call {call_id}: {e}")

        return result
