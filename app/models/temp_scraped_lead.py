import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.core.database import Base


class TempScrapedLead(Base):
    """Raw provider record staged between scraping and deduplication."""

    __tablename__ = "temp_scraped_leads"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    search_term_id = Column(String, ForeignKey("search_terms.id", ondelete="SET NULL"), nullable=True)
    # Run that staged the row, used to count what a timed-out run produced
    scrape_run_id = Column(String, nullable=True, index=True)

    business_name = Column(String, nullable=False)
    google_url = Column(String, nullable=True)
    website = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    address = Column(String, nullable=True)
    rating = Column(Float, nullable=True)
    review_count = Column(Integer, nullable=True)

    processed = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    project = relationship("Project", back_populates="temp_leads")
