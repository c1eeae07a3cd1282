import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from app.core.database import Base


class SearchTerm(Base):
    __tablename__ = "search_terms"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    term = Column(String, nullable=False)
    status = Column(
        String,
        default="pending",
        nullable=False,
    )  # pending, scraping, completed, failed
    position = Column(Integer, default=0, nullable=False)
    leads_count = Column(Integer, default=0, nullable=False)
    progress_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    project = relationship("Project", back_populates="search_terms")
