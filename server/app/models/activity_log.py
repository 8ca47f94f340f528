"""Activity log model."""

from app.models.base import Base, SoftDeleteMixin, TimestampMixin
from sqlalchemy import Column, DateTime, ForeignKey, String, Text


class ActivityLog(Base, TimestampMixin, SoftDeleteMixin):
    """Care activity entry (visits, calls, medication changes, notes)."""

    __tablename__ = "activity_logs"

    id = Column(String(36), primary_key=True)
    group_id = Column(String(36), ForeignKey("care_groups.id"), nullable=False, index=True)

    title = Column(String(255))
    type = Column(String(50))
    date_time = Column(DateTime, nullable=False, index=True)
    notes = Column(Text)

    def __repr__(self):
        return f"<ActivityLog(id={self.id}, title='{self.title}', date_time='{self.date_time}')>"
