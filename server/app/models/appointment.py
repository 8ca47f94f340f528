"""Appointment model."""

from app.models.base import Base, SoftDeleteMixin, TimestampMixin
from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text


class Appointment(Base, TimestampMixin, SoftDeleteMixin):
    """Appointment model for storing care appointments.

    Stores:
    - Scheduling details (date/time, category)
    - Location (street address, city, state)
    - Outcome notes recorded after the visit
    """

    __tablename__ = "appointments"

    __table_args__ = (
        # Voice lookups filter by group and a date window
        Index("ix_appointments_group_date_time", "group_id", "date_time"),
    )

    # Primary Identity
    id = Column(String(36), primary_key=True)
    group_id = Column(String(36), ForeignKey("care_groups.id"), nullable=False, index=True)

    # Appointment Details
    description = Column(Text)
    date_time = Column(DateTime, nullable=False, index=True)
    category = Column(String(100))

    # Location
    street_address = Column(String(255))
    city = Column(String(100))
    state = Column(String(50))

    # Notes
    outcome_notes = Column(Text)

    def __repr__(self):
        return f"<Appointment(id={self.id}, group_id={self.group_id}, date_time='{self.date_time}')>"
