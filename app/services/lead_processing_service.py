import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.database import SessionLocal
from app.models.lead import Lead
from app.models.project import Project
from app.models.temp_scraped_lead import TempScrapedLead
from app.services import activity_log as log
from app.services import lead_store
from app.services.lead_store import LeadResolutionError, LinkResult

logger = logging.getLogger(__name__)


class LeadsAlreadyProcessedError(Exception):
    pass


class ProjectNotFoundError(Exception):
    pass


@dataclass
class ProcessingSummary:
    processed: int = 0
    added: int = 0
    duplicates: int = 0
    skipped: int = 0


def unprocessed_leads(db: Session, project_id: str) -> list[TempScrapedLead]:
    return (
        db.query(TempScrapedLead)
        .filter(TempScrapedLead.project_id == project_id, TempScrapedLead.processed == False)  # noqa: E712
        .order_by(TempScrapedLead.created_at)
        .all()
    )


def _legacy_lead(project_id: str, temp_lead: TempScrapedLead, unique_lead_id: str) -> Lead:
    return Lead(
        project_id=project_id,
        search_term_id=temp_lead.search_term_id,
        unique_lead_id=unique_lead_id,
        business_name=temp_lead.business_name,
        google_url=temp_lead.google_url,
        website=temp_lead.website,
        phone=temp_lead.phone,
        email=temp_lead.email,
        address=temp_lead.address,
        rating=temp_lead.rating,
        review_count=temp_lead.review_count,
    )


def process_leads(db: Session, project_id: str) -> ProcessingSummary:
    """Deduplicate a project's staged leads into unique leads and memberships.

    Each staged row is handled in its own transaction: it is resolved to a
    unique lead, linked to the project (or counted as a duplicate) and marked
    processed. A row that fails is rolled back, logged and left unprocessed so
    a later run picks it up. Project totals are written once every row has
    been attempted, together with ``leads_processed=True``.
    """
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise ProjectNotFoundError(project_id)
    if project.leads_processed:
        raise LeadsAlreadyProcessedError(project_id)

    temp_leads = unprocessed_leads(db, project_id)
    summary = ProcessingSummary()
    logger.info(f"[{project_id}] Processing {len(temp_leads)} temp leads")
    log.add_log(project_id, "process", f"Processing {len(temp_leads)} scraped leads...", emoji="🧹")

    for i, temp_lead in enumerate(temp_leads):
        temp_id = temp_lead.id
        name = temp_lead.business_name
        try:
            unique_lead_id = lead_store.resolve(db, temp_lead)
        except LeadResolutionError as e:
            db.rollback()
            logger.error(f"[{project_id}] Skipping temp lead {temp_id} ({name}): {e}")
            summary.skipped += 1
            continue

        try:
            result = lead_store.link(db, project_id, unique_lead_id, temp_lead.search_term_id)
            if result is LinkResult.LINKED:
                db.add(_legacy_lead(project_id, temp_lead, unique_lead_id))
            temp_lead.processed = True
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.error(f"[{project_id}] Error processing temp lead {temp_id} ({name})", exc_info=True)
            summary.skipped += 1
            continue

        summary.processed += 1
        if result is LinkResult.LINKED:
            summary.added += 1
        else:
            summary.duplicates += 1

        if (i + 1) % 10 == 0:
            log.set_progress(project_id, "process", (i + 1) / len(temp_leads) * 100)

    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise ProjectNotFoundError(project_id)
    project.total_leads = (project.total_leads or 0) + summary.added
    project.duplicates_removed = (project.duplicates_removed or 0) + summary.duplicates
    project.leads_processed = True
    db.commit()

    logger.info(
        f"[{project_id}] Completed: {summary.added} leads added, "
        f"{summary.duplicates} duplicates removed, {summary.skipped} skipped"
    )
    log.set_progress(project_id, "process", 100)
    log.add_log(
        project_id, "process",
        f"Added {summary.added} leads, removed {summary.duplicates} duplicates",
        emoji="✅",
    )
    return summary


def process_leads_background(project_id: str) -> None:
    """BackgroundTasks entrypoint; opens and closes its own session."""
    db = SessionLocal()
    try:
        process_leads(db, project_id)
    except LeadsAlreadyProcessedError:
        logger.info(f"[{project_id}] Leads already processed, nothing to do")
    except Exception:
        # leads_processed stays False so the job can be retried
        logger.error(f"[{project_id}] Lead processing failed", exc_info=True)
        log.add_log(project_id, "error", "Lead processing failed. Please try again.", emoji="❌")
    finally:
        db.close()
