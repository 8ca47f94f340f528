"""Database models for the care-coordination store (read-only from here)."""

from app.models.activity_log import ActivityLog
from app.models.appointment import Appointment
from app.models.base import Base
from app.models.care_group import CareGroup, CareGroupMember
from app.models.contact import Contact
from app.models.document import Document
from app.models.profile import Profile
from app.models.task import Task

__all__ = [
    "Base",
    "CareGroup",
    "CareGroupMember",
    "Profile",
    "Appointment",
    "Task",
    "Document",
    "Contact",
    "ActivityLog",
]
