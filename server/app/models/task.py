"""Task model."""

from app.models.base import Base, SoftDeleteMixin, TimestampMixin
from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

DEFAULT_PRIORITY = "medium"


class Task(Base, TimestampMixin, SoftDeleteMixin):
    """Care task. A task is open until ``completed_at`` is set."""

    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True)
    group_id = Column(String(36), ForeignKey("care_groups.id"), nullable=False, index=True)

    title = Column(String(255))
    description = Column(Text)
    due_date = Column(Date, index=True)
    priority = Column(String(20), default=DEFAULT_PRIORITY)
    status = Column(String(50))
    completed_at = Column(DateTime)

    # Assignment
    primary_owner_id = Column(String(36), ForeignKey("profiles.user_id"))
    primary_owner = relationship("Profile")

    def __repr__(self):
        return f"<Task(id={self.id}, title='{self.title}', completed_at='{self.completed_at}')>"
