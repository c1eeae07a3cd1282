import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.core.database import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    status = Column(
        String,
        default="draft",
        nullable=False,
    )  # draft, scraping, completed, failed
    total_leads = Column(Integer, default=0, nullable=False)
    duplicates_removed = Column(Integer, default=0, nullable=False)
    temp_leads_count = Column(Integer, default=0, nullable=False)
    leads_processed = Column(Boolean, default=False, nullable=False)

    # Token of the scrape run allowed to write status; cleared by reset
    scrape_run_id = Column(String, nullable=True)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User", backref="projects")
    search_terms = relationship(
        "SearchTerm",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SearchTerm.position",
    )
    temp_leads = relationship(
        "TempScrapedLead", back_populates="project", cascade="all, delete-orphan", passive_deletes=True
    )
    project_leads = relationship(
        "ProjectLead", back_populates="project", cascade="all, delete-orphan", passive_deletes=True
    )
    leads = relationship("Lead", back_populates="project", cascade="all, delete-orphan", passive_deletes=True)
