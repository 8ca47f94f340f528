"""
Caller identification from the calling phone number.

A number registered as a care recipient's phone binds the call to that care
group. Otherwise a member profile with that number is looked up, and the call
may go to any group the member belongs to (resolved by ``MultiScope``).
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from app.models.care_group import CareGroup, CareGroupMember
from app.models.profile import Profile
from app.services.scope import CallerKind, DirectScope, MultiScope, ScopeSelection
from sqlalchemy import select

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerMatch:
    """Who is calling and which care group(s) they may reach."""

    selection: ScopeSelection
    caller_kind: CallerKind
    caller_id: str

    @property
    def scope_id(self) -> Optional[str]:
        return self.selection.resolve()


def normalize_phone(raw: Optional[str]) -> str:
    """Digits only, without the +1 country code: '+1 (555) 000-1111' -> '5550001111'."""
    digits = re.sub(r"\D", "", raw or "")
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    return digits


async def identify_caller(
    session_factory: Callable, phone: Optional[str], default_hint: Optional[str] = None
) -> Optional[CallerMatch]:
    """
    Identify a caller by phone number.

    Args:
        session_factory: Callable returning an async context manager that
            yields a read-only session
        phone: Calling number as sent by Twilio (E.164)
        default_hint: Preferred care group for members in several groups

    Returns:
        CallerMatch, or None if the number is not registered
    """
    number = normalize_phone(phone)
    if not number:
        return None
    numbers = {number, phone.strip()}

    async with session_factory() as db:
        group_id = (
            await db.execute(
                select(CareGroup.id)
                .where(CareGroup.recipient_phone.in_(numbers))
                .order_by(CareGroup.id)
                .limit(1)
            )
        ).scalar_one_or_none()

        if group_id:
            logger.info(f"Caller {number} is the care recipient of {group_id}")
            return CallerMatch(DirectScope(group_id), CallerKind.RECIPIENT, phone)

        user_id = (
            await db.execute(
                select(Profile.user_id)
                .where(Profile.phone.in_(numbers))
                .order_by(Profile.user_id)
                .limit(1)
            )
        ).scalar_one_or_none()

        if user_id is None:
            logger.info(f"Caller {number} not recognized")
            return None

        group_ids = (
            await db.execute(
                select(CareGroupMember.group_id)
                .where(CareGroupMember.user_id == user_id)
                .order_by(CareGroupMember.created_at, CareGroupMember.group_id)
            )
        ).scalars().all()

    logger.info(f"Caller {number} is member {user_id} of {len(group_ids)} care group(s)")
    # A member with no groups cannot be routed by a URL hint alone
    hint = default_hint if group_ids else None
    return CallerMatch(MultiScope(tuple(group_ids), hint), CallerKind.MEMBER, user_id)
