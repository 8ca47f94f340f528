"""Read-only care lookup tools answered to the voice assistant.

Every tool takes a read-only session and the call's care group id, filters to
that group and to ``is_deleted = false``, caps the row count, and returns one
compact speakable string. Tools never raise: a failed lookup becomes an
apology the assistant can say out loud.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from app.config import settings
from app.models.activity_log import ActivityLog
from app.models.appointment import Appointment
from app.models.base import utcnow
from app.models.contact import Contact
from app.models.document import Document
from app.models.profile import Profile
from app.models.task import DEFAULT_PRIORITY, Task
from sqlalchemy import false, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Constants
APPOINTMENT_LIMIT = 5
TASK_LIMIT = 5
DOCUMENT_LIMIT = 5
CONTACT_LIMIT = 5
ACTIVITY_LIMIT = 5
SUMMARY_EXCERPT_CHARS = 100
NOTES_EXCERPT_CHARS = 50
ACTIVITY_LOOKBACK_DAYS = 7

UPCOMING_WINDOW_DAYS = 60
PAST_WINDOW_DAYS = 30
WEEK_WINDOW_DAYS = 7

APPOINTMENT_TIMEFRAMES = ("today", "tomorrow", "week", "upcoming", "past")
TASK_STATUSES = ("open", "completed", "all")

DEFAULT_TIMEFRAME = "upcoming"
DEFAULT_TASK_STATUS = "open"


def _apology(topic: str) -> str:
    return f"Sorry, I could not retrieve {topic} information at this time."


# ============================================================================
# Speech formatting helpers
# ============================================================================


def _local(dt: datetime) -> datetime:
    """Convert a stored naive-UTC timestamp to the display timezone."""
    return dt.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(settings.DISPLAY_TIMEZONE))


def speak_date(value) -> str:
    """'Monday, March 3' for a date or a stored timestamp."""
    if isinstance(value, datetime):
        value = _local(value)
    return f"{value:%A, %B} {value.day}"


def speak_time(value: datetime) -> str:
    """'2:30 PM' for a stored timestamp."""
    local = _local(value)
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{hour}:{local.minute:02d} {suffix}"


def excerpt(text: str, limit: int) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


def _join(header: str, entries) -> str:
    return f"{header}: " + ". ".join(entries) + "."


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _matches(column, term: str):
    """Case-insensitive substring match; LIKE wildcards in ``term`` are literal."""
    return func.lower(column).contains(term.lower(), autoescape=True)


# ============================================================================
# Tool 1: Appointments
# ============================================================================


def appointment_window(timeframe: str, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    Map a timeframe to a concrete [start, end] window in naive UTC.

    - today / tomorrow: that calendar day in the display timezone
    - week: now to now + 7 days
    - upcoming: now to now + 60 days
    - past: now - 30 days to now
    """
    now = now or utcnow()

    if timeframe in ("today", "tomorrow"):
        tz = ZoneInfo(settings.DISPLAY_TIMEZONE)
        local_now = now.replace(tzinfo=timezone.utc).astimezone(tz)
        day = local_now.date() + timedelta(days=1 if timeframe == "tomorrow" else 0)
        start_local = datetime(day.year, day.month, day.day, tzinfo=tz)
        end_local = start_local + timedelta(days=1)
        return (
            start_local.astimezone(timezone.utc).replace(tzinfo=None),
            end_local.astimezone(timezone.utc).replace(tzinfo=None),
        )
    if timeframe == "week":
        return now, now + timedelta(days=WEEK_WINDOW_DAYS)
    if timeframe == "past":
        return now - timedelta(days=PAST_WINDOW_DAYS), now
    return now, now + timedelta(days=UPCOMING_WINDOW_DAYS)


_APPOINTMENT_HEADERS = {
    "today": "Appointments today",
    "tomorrow": "Appointments tomorrow",
    "week": "Appointments this week",
    "upcoming": "Upcoming appointments",
    "past": "Recent appointments",
}

_APPOINTMENT_EMPTY = {
    "today": "No appointments found for today.",
    "tomorrow": "No appointments found for tomorrow.",
    "week": "No appointments found for this week.",
    "upcoming": "No upcoming appointments found.",
    "past": "No past appointments found.",
}


async def get_appointments(
    db: AsyncSession, scope_id: str, timeframe: Optional[str] = None
) -> str:
    """
    Describe appointments in a timeframe.

    Args:
        db: Read-only database session
        scope_id: Care group id
        timeframe: today | tomorrow | week | upcoming | past (default: upcoming)

    Returns:
        Speakable summary, e.g.
        "Upcoming appointments: Cardiology follow-up on Monday, March 3 at 2:30 PM
        (medical) at 12 Elm Street."
    """
    timeframe = (_clean(timeframe) or DEFAULT_TIMEFRAME).lower()
    if timeframe not in APPOINTMENT_TIMEFRAMES:
        logger.info(f"Unknown appointment timeframe '{timeframe}', using {DEFAULT_TIMEFRAME}")
        timeframe = DEFAULT_TIMEFRAME

    start, end = appointment_window(timeframe)
    order = Appointment.date_time.desc() if timeframe == "past" else Appointment.date_time.asc()

    try:
        stmt = (
            select(Appointment)
            .where(
                Appointment.group_id == scope_id,
                Appointment.is_deleted == false(),
                Appointment.date_time >= start,
                Appointment.date_time <= end,
            )
            .order_by(order, Appointment.id)
            .limit(APPOINTMENT_LIMIT)
        )
        appointments = (await db.execute(stmt)).scalars().all()
    except Exception as e:
        logger.error(f"Error fetching appointments for {scope_id}: {e}", exc_info=True)
        return _apology("appointment")

    if not appointments:
        return _APPOINTMENT_EMPTY[timeframe]

    entries = []
    for apt in appointments:
        entry = (
            f"{apt.description or 'Appointment'} on {speak_date(apt.date_time)} "
            f"at {speak_time(apt.date_time)}"
        )
        if apt.category:
            entry += f" ({apt.category})"
        if apt.street_address:
            entry += f" at {apt.street_address}"
        entries.append(entry)

    return _join(_APPOINTMENT_HEADERS[timeframe], entries)


# ============================================================================
# Tool 2: Tasks
# ============================================================================


async def get_tasks(db: AsyncSession, scope_id: str, status: Optional[str] = None) -> str:
    """
    Describe tasks filtered by completion.

    Open tasks have no ``completed_at``; completed tasks do. Sorted by due date
    ascending with undated tasks last.

    Args:
        db: Read-only database session
        scope_id: Care group id
        status: open | completed | all (default: open)
    """
    status = (_clean(status) or DEFAULT_TASK_STATUS).lower()
    if status not in TASK_STATUSES:
        logger.info(f"Unknown task status '{status}', using {DEFAULT_TASK_STATUS}")
        status = DEFAULT_TASK_STATUS

    try:
        stmt = (
            select(Task, Profile)
            .outerjoin(Profile, Task.primary_owner_id == Profile.user_id)
            .where(Task.group_id == scope_id, Task.is_deleted == false())
        )
        if status == "open":
            stmt = stmt.where(Task.completed_at.is_(None))
        elif status == "completed":
            stmt = stmt.where(Task.completed_at.is_not(None))

        # Portable NULLS LAST
        stmt = stmt.order_by(Task.due_date.is_(None), Task.due_date.asc(), Task.id).limit(
            TASK_LIMIT
        )
        rows = (await db.execute(stmt)).all()
    except Exception as e:
        logger.error(f"Error fetching tasks for {scope_id}: {e}", exc_info=True)
        return _apology("task")

    if not rows:
        return "No tasks found." if status == "all" else f"No {status} tasks found."

    entries = []
    for task, owner in rows:
        entry = task.title or "Untitled task"
        if task.due_date:
            entry += f" due {speak_date(task.due_date)}"
        if owner is not None and owner.full_name:
            entry += f" assigned to {owner.full_name}"
        if task.completed_at:
            entry += f" completed {speak_date(task.completed_at)}"
        if task.priority and task.priority.lower() != DEFAULT_PRIORITY:
            entry += f" ({task.priority.lower()} priority)"
        entries.append(entry)

    header = {"open": "Open tasks", "completed": "Completed tasks", "all": "All tasks"}[status]
    return _join(header, entries)


# ============================================================================
# Tool 3: Documents
# ============================================================================


async def get_documents(db: AsyncSession, scope_id: str, search_term: Optional[str] = None) -> str:
    """
    Describe summarized documents, newest first.

    Only documents with a generated summary are eligible. ``search_term`` is a
    case-insensitive substring match against title or original filename.
    """
    search_term = _clean(search_term)

    try:
        stmt = select(Document).where(
            Document.group_id == scope_id,
            Document.is_deleted == false(),
            Document.summary.is_not(None),
        )
        if search_term:
            stmt = stmt.where(
                or_(
                    _matches(Document.title, search_term),
                    _matches(Document.original_filename, search_term),
                )
            )
        stmt = stmt.order_by(Document.upload_date.desc(), Document.id).limit(DOCUMENT_LIMIT)
        documents = (await db.execute(stmt)).scalars().all()
    except Exception as e:
        logger.error(f"Error fetching documents for {scope_id}: {e}", exc_info=True)
        return _apology("document")

    if not documents:
        if search_term:
            return f'No documents found matching "{search_term}".'
        return "No documents found."

    entries = []
    for doc in documents:
        name = doc.title or doc.original_filename or "Untitled document"
        entry = f"{name} (uploaded {speak_date(doc.upload_date)})"
        if doc.summary:
            entry += f" - {excerpt(doc.summary, SUMMARY_EXCERPT_CHARS)}"
        entries.append(entry)

    return _join("Documents", entries)


# ============================================================================
# Tool 4: Contacts
# ============================================================================


async def get_contacts(db: AsyncSession, scope_id: str, type: Optional[str] = None) -> str:
    """
    Describe care contacts.

    ``type`` (e.g. "doctor", "pharmacy", "emergency") is matched
    case-insensitively against contact category, title and organization.
    "all" means no filter.
    """
    contact_type = _clean(type)
    if contact_type and contact_type.lower() == "all":
        contact_type = None

    try:
        stmt = select(Contact).where(
            Contact.care_group_id == scope_id,
            Contact.is_deleted == false(),
        )
        if contact_type:
            stmt = stmt.where(
                or_(
                    _matches(Contact.contact_type, contact_type),
                    _matches(Contact.title, contact_type),
                    _matches(Contact.organization_name, contact_type),
                )
            )
        stmt = stmt.order_by(Contact.contact_type, Contact.id).limit(CONTACT_LIMIT)
        contacts = (await db.execute(stmt)).scalars().all()
    except Exception as e:
        logger.error(f"Error fetching contacts for {scope_id}: {e}", exc_info=True)
        return _apology("contact")

    if not contacts:
        if contact_type:
            return f'No contacts found for "{contact_type}".'
        return "No contacts found."

    entries = []
    for contact in contacts:
        entry = contact.display_name
        role = contact.title or contact.contact_type
        if role:
            entry += f" ({role})"
        if contact.organization_name and contact.organization_name != contact.display_name:
            entry += f" with {contact.organization_name}"
        if contact.phone_primary:
            entry += f" at {contact.phone_primary}"
        entries.append(entry)

    return _join("Contacts", entries)


# ============================================================================
# Tool 5: Recent activity
# ============================================================================


async def get_recent_activities(db: AsyncSession, scope_id: str) -> str:
    """Describe activity log entries from the last seven days, newest first."""
    since = utcnow() - timedelta(days=ACTIVITY_LOOKBACK_DAYS)

    try:
        stmt = (
            select(ActivityLog)
            .where(
                ActivityLog.group_id == scope_id,
                ActivityLog.is_deleted == false(),
                ActivityLog.date_time >= since,
            )
            .order_by(ActivityLog.date_time.desc(), ActivityLog.id)
            .limit(ACTIVITY_LIMIT)
        )
        activities = (await db.execute(stmt)).scalars().all()
    except Exception as e:
        logger.error(f"Error fetching recent activities for {scope_id}: {e}", exc_info=True)
        return _apology("activity")

    if not activities:
        return "No recent activities found."

    entries = []
    for activity in activities:
        entry = f"{activity.title or activity.type or 'Activity'} on {speak_date(activity.date_time)}"
        if activity.notes:
            entry += f" - {excerpt(activity.notes, NOTES_EXCERPT_CHARS)}"
        entries.append(entry)

    return _join("Recent activities", entries)
