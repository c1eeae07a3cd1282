"""Scrape orchestration for a project's search terms.

A scrape run stages raw provider records in ``temp_scraped_leads`` and
reports progress on the project and its search terms. Identity resolution is
left to the lead processing job so a run stays fast.

Each run is stamped with a ``scrape_run_id``. Status writes only land while
the project still carries that token, so a run that outlives a reset or a
timeout cannot overwrite the newer state.
"""

import asyncio
import logging
import uuid
from typing import Callable

from sqlalchemy import exists, func, update
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.database import SessionLocal
from app.models.project import Project
from app.models.search_term import SearchTerm
from app.models.temp_scraped_lead import TempScrapedLead
from app.services import activity_log as log

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 200


def truncate_message(message: str, limit: int = MAX_MESSAGE_LENGTH) -> str:
    if len(message) > limit:
        return message[:limit] + "..."
    return message


def _run_is_current(project_id: str, run_id: str):
    return exists().where(Project.id == project_id, Project.scrape_run_id == run_id)


def _update_project(db: Session, project_id: str, run_id: str, **values) -> bool:
    """Apply ``values`` to the project if ``run_id`` still owns it."""
    result = db.execute(
        update(Project)
        .where(Project.id == project_id, Project.scrape_run_id == run_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount > 0


def _update_term(db: Session, project_id: str, run_id: str, term_id: str, **values) -> bool:
    result = db.execute(
        update(SearchTerm)
        .where(SearchTerm.id == term_id, _run_is_current(project_id, run_id))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount > 0


def start_scrape(db: Session, project: Project) -> str:
    """Move a draft project into ``scraping`` and return the new run token."""
    run_id = str(uuid.uuid4())
    project_id = project.id
    term_count = len(project.search_terms)
    project.status = "scraping"
    project.scrape_run_id = run_id
    project.temp_leads_count = 0
    project.leads_processed = False
    for term in project.search_terms:
        term.status = "pending"
        term.leads_count = 0
        term.progress_message = None
    db.commit()

    log.clear(project_id)
    log.set_progress(project_id, "starting", 0)
    log.add_log(project_id, "starting", f"Scraping started for {term_count} search terms", emoji="🚀")
    logger.info(f"[{project_id}] Scrape run {run_id} started")
    return run_id


def reset_project(db: Session, project: Project) -> None:
    """Force a project back to draft, abandoning any run still in flight."""
    project_id = project.id
    project.status = "draft"
    project.scrape_run_id = None
    for term in project.search_terms:
        term.status = "pending"
        term.leads_count = 0
        term.progress_message = None
    db.commit()

    log.clear(project_id)
    logger.info(f"[{project_id}] Project reset to draft")


def _stage_places(db: Session, project_id: str, run_id: str, term_id: str, places: list) -> int:
    for place in places:
        db.add(
            TempScrapedLead(
                project_id=project_id,
                search_term_id=term_id,
                scrape_run_id=run_id,
                business_name=place.business_name,
                google_url=place.google_url,
                website=place.website,
                phone=place.phone,
                email=place.email,
                address=place.address,
                rating=place.rating,
                review_count=place.review_count,
                processed=False,
            )
        )
    db.commit()
    return len(places)


async def scrape_project(project_id: str, run_id: str, provider, db: Session) -> int:
    """Scrape every search term of a project sequentially.

    A failing term is marked ``failed`` and the run moves on; anything else
    that goes wrong fails the project. Returns the number of staged records.
    The session is committed before every provider call so no transaction
    stays open across an ``await``.
    """
    total = 0
    try:
        terms = (
            db.query(SearchTerm.id, SearchTerm.term)
            .filter(SearchTerm.project_id == project_id)
            .order_by(SearchTerm.position)
            .all()
        )
        db.commit()
        logger.info(f"[{project_id}] Scraping {len(terms)} search terms")

        for i, (term_id, term_text) in enumerate(terms):
            if not _update_term(
                db, project_id, run_id, term_id,
                status="scraping",
                progress_message=f"Searching for: {term_text}",
            ):
                logger.info(f"[{project_id}] Run {run_id} superseded, stopping")
                return total
            log.add_log(project_id, "search", f"Searching for: \"{term_text}\"", emoji="🔍")

            try:
                places = await provider.search(term_text)
            except Exception as e:
                logger.error(f"[{project_id}] Error scraping search term {term_text!r}: {e}")
                message = truncate_message(str(e) or "Failed to scrape this search term")
                _update_term(
                    db, project_id, run_id, term_id,
                    status="failed",
                    progress_message=f"Error: {message}",
                )
                log.add_log(project_id, "search", f"Failed: \"{term_text}\" - {message}", emoji="❌")
                continue

            if not db.query(_run_is_current(project_id, run_id)).scalar():
                db.commit()
                logger.info(f"[{project_id}] Run {run_id} superseded, discarding {len(places)} results")
                return total

            count = _stage_places(db, project_id, run_id, term_id, places)
            total += count
            _update_term(
                db, project_id, run_id, term_id,
                status="completed",
                leads_count=count,
                progress_message=f"Scraped {count} leads - ready to process",
            )
            log.add_log(project_id, "search", f"Staged {count} leads for \"{term_text}\"", emoji="✅")
            log.set_progress(project_id, "search", (i + 1) / max(len(terms), 1) * 100)

        _update_project(
            db, project_id, run_id,
            status="completed",
            temp_leads_count=total,
            leads_processed=False,
            scrape_run_id=None,
        )
        logger.info(f"[{project_id}] Completed: {total} leads saved to temp storage")
        log.add_log(project_id, "done", f"Scraping complete, {total} leads ready to process", emoji="🎉")
    except Exception as e:
        logger.error(f"[{project_id}] Scraping failed: {e}", exc_info=True)
        db.rollback()
        try:
            _update_project(
                db, project_id, run_id,
                status="failed",
                temp_leads_count=total,
                scrape_run_id=None,
            )
        except Exception:
            logger.error(f"[{project_id}] Could not mark project failed", exc_info=True)
        log.add_log(project_id, "error", f"Scraping failed: {truncate_message(str(e), 120)}", emoji="❌")
    return total


def expire_run(db: Session, project_id: str, run_id: str, message: str) -> bool:
    """Fail a run that exceeded its time limit. Returns False if already superseded."""
    db.execute(
        update(SearchTerm)
        .where(
            SearchTerm.project_id == project_id,
            SearchTerm.status == "scraping",
            _run_is_current(project_id, run_id),
        )
        .values(status="failed", progress_message=message)
        .execution_options(synchronize_session=False)
    )
    staged = (
        db.query(func.count(TempScrapedLead.id))
        .filter(TempScrapedLead.project_id == project_id, TempScrapedLead.scrape_run_id == run_id)
        .scalar()
    )
    return _update_project(
        db, project_id, run_id,
        status="failed",
        temp_leads_count=staged or 0,
        scrape_run_id=None,
    )


async def _timeout_guard(
    project_id: str, run_id: str, timeout: float, session_factory: Callable[[], Session]
) -> None:
    await asyncio.sleep(timeout)
    db = session_factory()
    try:
        message = f"Scraping timed out after {timeout:g} seconds"
        if expire_run(db, project_id, run_id, message):
            logger.warning(f"[{project_id}] {message}")
            log.add_log(project_id, "error", message, emoji="⏱️")
    finally:
        db.close()


async def _scrape_with_session(
    project_id: str, run_id: str, provider, session_factory: Callable[[], Session]
) -> int:
    db = session_factory()
    try:
        return await scrape_project(project_id, run_id, provider, db)
    finally:
        db.close()


async def run_scrape(
    project_id: str,
    run_id: str,
    provider,
    settings: Settings,
    session_factory: Callable[[], Session] = SessionLocal,
) -> None:
    """Background entrypoint: race the scrape against the guard timer.

    Whichever task finishes first wins and the other is cancelled. Each task
    opens its own session.
    """
    main = asyncio.create_task(_scrape_with_session(project_id, run_id, provider, session_factory))
    timeout = settings.SCRAPE_TIMEOUT_SECONDS
    if not timeout or timeout <= 0:
        await main
        return

    guard = asyncio.create_task(_timeout_guard(project_id, run_id, timeout, session_factory))
    done, pending = await asyncio.wait({main, guard}, return_when=asyncio.FIRST_COMPLETED)
    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)

    for task in done:
        if task.exception() is not None:
            logger.error(f"[{project_id}] Scrape task crashed", exc_info=task.exception())
