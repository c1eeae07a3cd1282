import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, Float, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from app.core.database import Base


class UniqueLead(Base):
    """Canonical business identity shared by every project that finds it."""

    __tablename__ = "unique_leads"
    __table_args__ = (
        UniqueConstraint("name_key", "address_key", name="uq_unique_leads_identity"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    business_name = Column(String, nullable=False)
    address = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    website = Column(String, nullable=True)
    google_url = Column(String, nullable=True)
    rating = Column(Float, nullable=True)
    review_count = Column(Integer, nullable=True)
    email = Column(String, nullable=True, index=True)

    # Normalized identity key, see app.services.lead_store.normalize_key
    name_key = Column(String, nullable=False)
    address_key = Column(String, nullable=False, default="")

    times_found = Column(Integer, default=1, nullable=False)
    first_seen_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    last_updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    project_leads = relationship("ProjectLead", back_populates="unique_lead")
