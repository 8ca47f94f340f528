"""
Tool catalogue and dispatch table for the Realtime session.

TOOL_REGISTRY is the single source of truth: the catalogue advertised in
``session.update`` and the handler the router dispatches to are both read from
it, so the two cannot drift apart. Only read-only lookups are registered.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List

from app.tools.care_tools import (
    APPOINTMENT_TIMEFRAMES,
    TASK_STATUSES,
    get_appointments,
    get_contacts,
    get_documents,
    get_recent_activities,
    get_tasks,
)


@dataclass(frozen=True)
class QueryTool:
    """One catalogue entry: name, description, argument schema and handler."""

    name: str
    description: str
    parameters: Dict[str, Any]
    handler: Callable[..., Awaitable[str]]

    @property
    def argument_names(self) -> List[str]:
        return list(self.parameters.get("properties", {}).keys())

    def schema(self) -> Dict[str, Any]:
        """Realtime API function tool definition."""
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


_TOOLS = [
    QueryTool(
        name="get_appointments",
        description=(
            "Get appointments for the care recipient. Use 'today', 'tomorrow' or 'week' for "
            "near-term questions, 'upcoming' for the next 60 days, 'past' for the last 30 days."
        ),
        parameters={
            "type": "object",
            "properties": {
                "timeframe": {
                    "type": "string",
                    "enum": list(APPOINTMENT_TIMEFRAMES),
                    "description": "Which appointments to look up (default: upcoming)",
                }
            },
        },
        handler=get_appointments,
    ),
    QueryTool(
        name="get_tasks",
        description="Get care tasks for the care recipient, filtered by whether they are done.",
        parameters={
            "type": "object",
            "properties": {
                "status": {
                    "type": "string",
                    "enum": list(TASK_STATUSES),
                    "description": "Filter tasks by status (default: open)",
                }
            },
        },
        handler=get_tasks,
    ),
    QueryTool(
        name="get_documents",
        description=(
            "Get summaries of the care recipient's documents, optionally searching by title "
            "or filename."
        ),
        parameters={
            "type": "object",
            "properties": {
                "search_term": {
                    "type": "string",
                    "description": "Search term for document titles or filenames",
                }
            },
        },
        handler=get_documents,
    ),
    QueryTool(
        name="get_contacts",
        description="Get contact information, especially for healthcare providers.",
        parameters={
            "type": "object",
            "properties": {
                "type": {
                    "type": "string",
                    "description": "Type of contact (e.g., doctor, pharmacy, emergency, all)",
                }
            },
        },
        handler=get_contacts,
    ),
    QueryTool(
        name="get_recent_activities",
        description="Get care activities and notes from the last seven days.",
        parameters={"type": "object", "properties": {}},
        handler=get_recent_activities,
    ),
]

# Dispatch table: function name -> tool
TOOL_REGISTRY: Dict[str, QueryTool] = {tool.name: tool for tool in _TOOLS}

# Catalogue sent in session.update
TOOL_SCHEMAS: List[Dict[str, Any]] = [tool.schema() for tool in _TOOLS]
