"""GenerationVersion model: one numbered, immutable snapshot of a project's files."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid

from sitegen.db.base import Base


class GenerationVersion(Base):
    __tablename__ = "generation_versions"
    __table_args__ = (UniqueConstraint("project_id", "version_number", name="uq_generation_versions_project_number"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    version_number = Column(Integer, nullable=False)

    status = Column(String(50), nullable=False, default="generating")  # generating, complete, error
    trigger_type = Column(String(50), nullable=False)  # initial, full-regenerate, section-edit
    model_used = Column(String(100), nullable=True)

    generation_time_ms = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    completed_at = Column(DateTime(timezone=True), nullable=True)
