"""User profile model."""

from app.models.base import Base, TimestampMixin
from sqlalchemy import Column, String


class Profile(Base, TimestampMixin):
    """Care team member profile (used to name task assignees)."""

    __tablename__ = "profiles"

    user_id = Column(String(36), primary_key=True)
    first_name = Column(String(100))
    last_name = Column(String(100))
    phone = Column(String(20), index=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def __repr__(self):
        return f"<Profile(user_id={self.user_id}, name='{self.full_name}')>"
