"""GeneratedFile model: one file owned by exactly one version."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid

from sitegen.db.base import Base


class GeneratedFile(Base):
    __tablename__ = "generated_files"
    __table_args__ = (UniqueConstraint("version_id", "file_path", name="uq_generated_files_version_path"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    version_id = Column(Uuid, ForeignKey("generation_versions.id", ondelete="CASCADE"), nullable=False, index=True)

    file_path = Column(String(500), nullable=False)
    content = Column(Text, nullable=False)
    file_type = Column(String(50), nullable=False, default="component")  # component, page, config, style, data
    section_type = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
