from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class ProjectCreate(BaseModel):
    name: str = ""
    search_terms: List[str] = Field(default_factory=list, alias="searchTerms")

    model_config = {"populate_by_name": True}


class SearchTermResponse(BaseModel):
    id: str
    project_id: str
    term: str
    status: str
    leads_count: int = 0
    progress_message: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProjectResponse(BaseModel):
    id: str
    name: str
    user_id: str
    status: str
    total_leads: int = 0
    duplicates_removed: int = 0
    temp_leads_count: int = 0
    leads_processed: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProjectDetailResponse(ProjectResponse):
    search_terms: List[SearchTermResponse] = []


class JobStartedResponse(BaseModel):
    message: str
    project_id: str


class ProjectResetResponse(BaseModel):
    message: str
    project: ProjectDetailResponse


class LogEntry(BaseModel):
    step: str
    emoji: str = ""
    message: str
    detail: Optional[str] = None
    timestamp: str


class ProjectStatusResponse(BaseModel):
    project_id: str
    status: str
    total_leads: int
    duplicates_removed: int
    temp_leads_count: int
    leads_processed: bool
    search_terms: List[SearchTermResponse] = []
    current_step: str = ""
    progress_pct: float = 0
    logs: List[LogEntry] = []
