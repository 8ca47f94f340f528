"""Contact model."""

from app.models.base import Base, SoftDeleteMixin, TimestampMixin
from sqlalchemy import Column, ForeignKey, String


class Contact(Base, TimestampMixin, SoftDeleteMixin):
    """Care contact (physicians, pharmacies, emergency contacts, ...)."""

    __tablename__ = "contacts"

    id = Column(String(36), primary_key=True)
    # Contacts are keyed by care_group_id rather than group_id
    care_group_id = Column(String(36), ForeignKey("care_groups.id"), nullable=False, index=True)

    first_name = Column(String(100))
    last_name = Column(String(100))
    organization_name = Column(String(200))
    title = Column(String(100))
    contact_type = Column(String(50), index=True)

    phone_primary = Column(String(30))
    phone_secondary = Column(String(30))
    email_personal = Column(String(255))

    @property
    def display_name(self) -> str:
        person = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return person or self.organization_name or "Unnamed contact"

    def __repr__(self):
        return f"<Contact(id={self.id}, name='{self.display_name}', type='{self.contact_type}')>"
