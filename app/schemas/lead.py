from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class LeadResponse(BaseModel):
    id: str
    project_id: str
    search_term_id: Optional[str] = None
    unique_lead_id: Optional[str] = None
    business_name: str
    google_url: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UniqueLeadResponse(BaseModel):
    id: str
    business_name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    google_url: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    email: Optional[str] = None
    times_found: int = 1
    first_seen_at: Optional[datetime] = None
    last_updated_at: Optional[datetime] = None
    source_project: str = "Unknown"
    first_found_date: Optional[datetime] = None
    total_projects: int = 0

    model_config = {"from_attributes": True}


class FindEmailsRequest(BaseModel):
    limit: int = Field(default=10, ge=1, le=100)


class EmailFinderResultResponse(BaseModel):
    lead_id: str
    business_name: str
    email: str
    confidence: str
    source: str


class FindEmailsResponse(BaseModel):
    success: bool = True
    processed: int
    found: int
    results: List[EmailFinderResultResponse] = []
    message: str = ""
    timestamp: Optional[datetime] = None


class EmailStatsResponse(BaseModel):
    total_leads: int
    leads_with_email: int
    leads_with_website: int
    leads_without_email: int
    ready_to_process: int
