"""UserSettings model: per-user plan and generation credits."""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String

from sitegen.db.base import Base


class UserSettings(Base):
    __tablename__ = "user_settings"
    __table_args__ = (CheckConstraint("generation_credits >= 0", name="ck_user_settings_credits_non_negative"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    clerk_user_id = Column(String(255), unique=True, nullable=False, index=True)

    plan = Column(String(50), nullable=False, default="free")  # free, beta, pro
    generation_credits = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
