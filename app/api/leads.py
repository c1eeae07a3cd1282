import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.security import get_current_user
from app.models.project import Project
from app.models.project_lead import ProjectLead
from app.models.unique_lead import UniqueLead
from app.models.user import User
from app.schemas.lead import (
    EmailStatsResponse,
    FindEmailsRequest,
    FindEmailsResponse,
    UniqueLeadResponse,
)
from app.services import email_enrichment_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/leads", tags=["leads"])


@router.get("", response_model=List[UniqueLeadResponse])
def list_unique_leads(
    q: Optional[str] = Query(None, description="Filter on business name or address"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Unique leads found by any of the current user's projects.

    Each lead carries the project that found it first, when that happened and
    how many of the user's projects it appears in. Most frequently found
    leads come first.
    """
    rows = (
        db.query(UniqueLead, ProjectLead.found_at, Project.name)
        .join(ProjectLead, ProjectLead.unique_lead_id == UniqueLead.id)
        .join(Project, Project.id == ProjectLead.project_id)
        .filter(Project.user_id == current_user.id)
        .order_by(ProjectLead.found_at)
        .all()
    )

    by_id: dict[str, dict] = {}
    for lead, found_at, project_name in rows:
        entry = by_id.get(lead.id)
        if entry is None:
            by_id[lead.id] = {
                "lead": lead,
                "source_project": project_name,
                "first_found_date": found_at,
                "total_projects": 1,
            }
        else:
            entry["total_projects"] += 1

    needle = q.strip().lower() if q else ""
    results = []
    for entry in by_id.values():
        lead = entry["lead"]
        if needle and needle not in lead.business_name.lower() and needle not in (lead.address or "").lower():
            continue
        response = UniqueLeadResponse.model_validate(lead)
        response.source_project = entry["source_project"] or "Unknown"
        response.first_found_date = entry["first_found_date"] or lead.first_seen_at
        response.total_projects = entry["total_projects"]
        results.append(response)

    results.sort(key=lambda r: (-r.times_found, r.business_name.lower()))
    return results


@router.post("/find-emails", response_model=FindEmailsResponse)
async def find_emails(
    payload: Optional[FindEmailsRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Look up emails for unique leads that have a website but no email."""
    limit = payload.limit if payload else 10
    summary = await email_enrichment_service.find_emails_for_leads(
        db,
        limit=limit,
        hunter_api_key=settings.get_api_key("hunter") or None,
        delay=settings.EMAIL_FINDER_DELAY_SECONDS,
        timeout=settings.EMAIL_FETCH_TIMEOUT_SECONDS,
    )
    return FindEmailsResponse(**summary, timestamp=datetime.now(timezone.utc))


@router.get("/find-emails", response_model=EmailStatsResponse)
def get_email_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return EmailStatsResponse(**email_enrichment_service.email_stats(db))
