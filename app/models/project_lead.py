import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.core.database import Base


class ProjectLead(Base):
    __tablename__ = "project_leads"
    __table_args__ = (
        UniqueConstraint("project_id", "unique_lead_id", name="uq_project_leads_membership"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    unique_lead_id = Column(String, ForeignKey("unique_leads.id"), nullable=False, index=True)
    search_term_id = Column(String, ForeignKey("search_terms.id", ondelete="SET NULL"), nullable=True)
    found_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    project = relationship("Project", back_populates="project_leads")
    unique_lead = relationship("UniqueLead", back_populates="project_leads")
