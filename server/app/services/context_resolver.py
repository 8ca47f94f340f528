"""
Care group context resolution.

Loads the profile facts that seed the AI session's instructions. Runs once per
call, before the upstream connection is opened; the snapshot is immutable and
never refreshed mid-call.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from app.models.care_group import CareGroup
from app.services.errors import ContextResolutionError
from sqlalchemy import select

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContextSnapshot:
    """Immutable profile facts for one care group."""

    scope_id: str
    group_name: str
    recipient_first_name: str
    recipient_last_name: str
    date_of_birth: Optional[date] = None
    profile_description: Optional[str] = None
    chronic_conditions: Optional[str] = None
    mental_health: Optional[str] = None
    mobility: Optional[str] = None
    memory: Optional[str] = None
    hearing: Optional[str] = None
    vision: Optional[str] = None

    @property
    def recipient_name(self) -> str:
        name = f"{self.recipient_first_name} {self.recipient_last_name}".strip()
        return name or "the care recipient"


async def resolve_context(session_factory: Callable, scope_id: str) -> Optional[ContextSnapshot]:
    """
    Load the context snapshot for a care group.

    Args:
        session_factory: Callable returning an async context manager that yields
            a read-only session
        scope_id: Care group id

    Returns:
        ContextSnapshot, or None if the care group does not exist

    Raises:
        ContextResolutionError: If the data store lookup fails. No retry is
            attempted; the call cannot proceed without context.
    """
    stmt = select(
        CareGroup.id,
        CareGroup.name,
        CareGroup.recipient_first_name,
        CareGroup.recipient_last_name,
        CareGroup.date_of_birth,
        CareGroup.profile_description,
        CareGroup.chronic_conditions,
        CareGroup.mental_health,
        CareGroup.mobility,
        CareGroup.memory,
        CareGroup.hearing,
        CareGroup.vision,
    ).where(CareGroup.id == scope_id)

    try:
        async with session_factory() as db:
            row = (await db.execute(stmt)).one_or_none()
    except Exception as e:
        logger.error(f"Error resolving context for care group {scope_id}: {e}", exc_info=True)
        raise ContextResolutionError() from e

    if row is None:
        logger.info(f"Care group not found: {scope_id}")
        return None

    snapshot = ContextSnapshot(
        scope_id=row.id,
        group_name=row.name,
        recipient_first_name=row.recipient_first_name or "",
        recipient_last_name=row.recipient_last_name or "",
        date_of_birth=row.date_of_birth,
        profile_description=row.profile_description,
        chronic_conditions=row.chronic_conditions,
        mental_health=row.mental_health,
        mobility=row.mobility,
        memory=row.memory,
        hearing=row.hearing,
        vision=row.vision,
    )
    logger.info(f"Context resolved for care group: {snapshot.group_name}")
    return snapshot
