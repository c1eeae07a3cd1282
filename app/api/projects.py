import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.security import get_current_user
from app.models.lead import Lead
from app.models.project import Project
from app.models.search_term import SearchTerm
from app.models.user import User
from app.schemas.lead import LeadResponse
from app.schemas.project import (
    JobStartedResponse,
    LogEntry,
    ProjectCreate,
    ProjectDetailResponse,
    ProjectResetResponse,
    ProjectResponse,
    ProjectStatusResponse,
    SearchTermResponse,
)
from app.services import activity_log
from app.services import lead_processing_service, scrape_service
from app.services.places_service import PlacesClient, get_search_provider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])


def get_owned_project(db: Session, project_id: str, user: User) -> Project:
    """Load a project belonging to ``user`` or raise 404."""
    project = (
        db.query(Project)
        .filter(Project.id == project_id, Project.user_id == user.id)
        .first()
    )
    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found",
        )
    return project


@router.post("", response_model=ProjectDetailResponse, status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create a draft project with its search terms."""
    name = payload.name.strip()
    terms = [t.strip() for t in payload.search_terms if t and t.strip()]
    if not name or not terms:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Project name and at least one search term are required",
        )

    project = Project(name=name, user_id=current_user.id, status="draft")
    project.search_terms = [
        SearchTerm(term=term, status="pending", position=i) for i, term in enumerate(terms)
    ]
    db.add(project)
    db.commit()
    db.refresh(project)
    logger.info(f"[{project.id}] Created project {name!r} with {len(terms)} search terms")
    return ProjectDetailResponse.model_validate(project)


@router.get("", response_model=List[ProjectResponse])
def list_projects(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    projects = (
        db.query(Project)
        .filter(Project.user_id == current_user.id)
        .order_by(Project.created_at.desc())
        .all()
    )
    return [ProjectResponse.model_validate(p) for p in projects]


@router.get("/{project_id}", response_model=ProjectDetailResponse)
def get_project(
    project_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = get_owned_project(db, project_id, current_user)
    return ProjectDetailResponse.model_validate(project)


@router.delete("/{project_id}")
def delete_project(
    project_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Delete a project with its search terms, staged leads and project leads.

    Unique leads are shared between projects and are kept.
    """
    project = get_owned_project(db, project_id, current_user)
    db.delete(project)
    db.commit()
    activity_log.clear(project_id)
    logger.info(f"[{project_id}] Project deleted")
    return {"message": "Project deleted successfully", "project_id": project_id}


@router.post("/{project_id}/scrape", response_model=JobStartedResponse, status_code=status.HTTP_202_ACCEPTED)
def start_scrape(
    project_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    provider: PlacesClient = Depends(get_search_provider),
):
    """Start scraping every search term; progress is polled via /status."""
    project = get_owned_project(db, project_id, current_user)

    if not project.search_terms:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No search terms found",
        )
    if project.status != "draft":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Project is {project.status}. Reset it to draft before scraping again.",
        )

    run_id = scrape_service.start_scrape(db, project)
    background_tasks.add_task(scrape_service.run_scrape, project_id, run_id, provider, settings)
    return JobStartedResponse(message="Scraping started", project_id=project_id)


@router.post("/{project_id}/reset", response_model=ProjectResetResponse)
def reset_project(
    project_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Force a stuck project back to draft and its search terms to pending."""
    project = get_owned_project(db, project_id, current_user)
    scrape_service.reset_project(db, project)
    return ProjectResetResponse(
        message="Project reset successfully",
        project=ProjectDetailResponse.model_validate(project),
    )


@router.post(
    "/{project_id}/process-leads",
    response_model=JobStartedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def process_leads(
    project_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Deduplicate the project's scraped leads in the background."""
    project = get_owned_project(db, project_id, current_user)

    if project.leads_processed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Leads already processed for this project",
        )
    if project.status == "scraping":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Scraping is still running for this project",
        )

    background_tasks.add_task(lead_processing_service.process_leads_background, project_id)
    return JobStartedResponse(message="Processing started", project_id=project_id)


@router.get("/{project_id}/status", response_model=ProjectStatusResponse)
def get_project_status(
    project_id: str,
    after: int = 0,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Project status, counters, per-term progress and activity log entries."""
    project = get_owned_project(db, project_id, current_user)
    progress = activity_log.get_progress(project_id)
    raw_logs = activity_log.get_logs(project_id, after=max(after, 0))

    return ProjectStatusResponse(
        project_id=project.id,
        status=project.status,
        total_leads=project.total_leads or 0,
        duplicates_removed=project.duplicates_removed or 0,
        temp_leads_count=project.temp_leads_count or 0,
        leads_processed=bool(project.leads_processed),
        search_terms=[SearchTermResponse.model_validate(t) for t in project.search_terms],
        current_step=progress.get("step", ""),
        progress_pct=progress.get("pct", 0),
        logs=[LogEntry(**entry) for entry in raw_logs],
    )


@router.get("/{project_id}/leads", response_model=List[LeadResponse])
def get_project_leads(
    project_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    get_owned_project(db, project_id, current_user)
    leads = (
        db.query(Lead)
        .filter(Lead.project_id == project_id)
        .order_by(Lead.created_at.desc())
        .all()
    )
    return [LeadResponse.model_validate(lead) for lead in leads]
