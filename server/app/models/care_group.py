"""Care group (tenant) and membership models."""

from app.models.base import Base, TimestampMixin
from sqlalchemy import Boolean, Column, Date, ForeignKey, String, Text
from sqlalchemy.orm import relationship


class CareGroup(Base, TimestampMixin):
    """Care group model.

    A care group is the tenant boundary: one care recipient plus the team of
    members who coordinate their care. The profile columns seed the voice
    assistant's instructions at the start of a call.
    """

    __tablename__ = "care_groups"

    # Primary Identity
    id = Column(String(36), primary_key=True)
    name = Column(String(200), nullable=False)

    # Care Recipient
    recipient_first_name = Column(String(100))
    recipient_last_name = Column(String(100))
    recipient_phone = Column(String(20), index=True)
    date_of_birth = Column(Date)

    # Profile
    profile_description = Column(Text)
    chronic_conditions = Column(Text)
    mental_health = Column(Text)
    mobility = Column(Text)
    memory = Column(Text)
    hearing = Column(Text)
    vision = Column(Text)

    # Relationships
    members = relationship("CareGroupMember", back_populates="care_group")

    def __repr__(self):
        return f"<CareGroup(id={self.id}, name='{self.name}')>"


class CareGroupMember(Base, TimestampMixin):
    """Membership of a user profile in a care group."""

    __tablename__ = "care_group_members"

    id = Column(String(36), primary_key=True)
    group_id = Column(String(36), ForeignKey("care_groups.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("profiles.user_id"), nullable=False, index=True)
    is_admin = Column(Boolean, default=False)
    relationship_to_recipient = Column(String(100))

    care_group = relationship("CareGroup", back_populates="members")
    profile = relationship("Profile")
