from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Text
from app.core.database import Base


class AppSetting(Base):
    """Runtime overrides for API keys, keyed by the environment variable name."""

    __tablename__ = "app_settings"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False, default="")
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
