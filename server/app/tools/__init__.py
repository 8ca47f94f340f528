"""Read-only care lookup tools for the voice assistant."""

from app.tools.care_tools import (
    get_appointments,
    get_contacts,
    get_documents,
    get_recent_activities,
    get_tasks,
)

__all__ = [
    "get_appointments",
    "get_tasks",
    "get_documents",
    "get_contacts",
    "get_recent_activities",
]
