"""Document model."""

from app.models.base import Base, SoftDeleteMixin, TimestampMixin
from sqlalchemy import Column, DateTime, ForeignKey, String, Text


class Document(Base, TimestampMixin, SoftDeleteMixin):
    """Uploaded document; ``summary`` is filled in by the extraction pipeline."""

    __tablename__ = "documents"

    id = Column(String(36), primary_key=True)
    group_id = Column(String(36), ForeignKey("care_groups.id"), nullable=False, index=True)

    title = Column(String(255))
    original_filename = Column(String(255))
    category = Column(String(100))
    summary = Column(Text)
    upload_date = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<Document(id={self.id}, title='{self.title}')>"
