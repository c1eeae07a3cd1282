import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from app.models.lead import Lead
from app.models.unique_lead import UniqueLead
from app.services import email_finder

logger = logging.getLogger(__name__)


def leads_missing_email(db: Session, limit: int) -> list[UniqueLead]:
    """Unique leads with a website but no email, most frequently found first."""
    return (
        db.query(UniqueLead)
        .filter(UniqueLead.email.is_(None), UniqueLead.website.isnot(None), UniqueLead.website != "")
        .order_by(UniqueLead.times_found.desc(), UniqueLead.created_at)
        .limit(limit)
        .all()
    )


def _save_email(db: Session, lead: UniqueLead, email: str) -> None:
    lead.email = email
    lead.last_updated_at = datetime.now(timezone.utc)
    # Project lead rows copied before the email was known
    (
        db.query(Lead)
        .filter(Lead.unique_lead_id == lead.id, Lead.email.is_(None))
        .update({Lead.email: email}, synchronize_session=False)
    )
    db.commit()


async def find_emails_for_leads(
    db: Session,
    limit: int,
    hunter_api_key: Optional[str] = None,
    delay: float = 0.5,
    timeout: float = 10.0,
) -> dict:
    """Look up emails for up to ``limit`` unique leads and persist the hits."""
    leads = leads_missing_email(db, limit)
    candidates = [(lead.id, lead.business_name, lead.website) for lead in leads]
    db.commit()

    if not candidates:
        return {
            "processed": 0,
            "found": 0,
            "results": [],
            "message": "No leads without emails found",
        }

    logger.info(f"Processing {len(candidates)} leads for email finding...")

    processed = 0
    found = 0
    results = []

    async with httpx.AsyncClient(follow_redirects=True) as client:
        for i, (lead_id, business_name, website) in enumerate(candidates):
            try:
                result = await email_finder.find_email(
                    website, business_name, hunter_api_key, client=client, timeout=timeout
                )
                processed += 1

                if result:
                    lead = db.query(UniqueLead).filter(UniqueLead.id == lead_id).first()
                    if lead is not None and lead.email is None:
                        _save_email(db, lead, result.email)
                        found += 1
                        results.append(
                            {
                                "lead_id": lead_id,
                                "business_name": business_name,
                                "email": result.email,
                                "confidence": result.confidence,
                                "source": result.source,
                            }
                        )
                        logger.info(f"Found email for {business_name}: {result.email}")
                    else:
                        db.commit()
                else:
                    logger.info(f"No email found for {business_name}")
            except Exception:
                db.rollback()
                logger.error(f"Error processing lead {business_name}", exc_info=True)

            if delay and i < len(candidates) - 1:
                await asyncio.sleep(delay)

    return {
        "processed": processed,
        "found": found,
        "results": results,
        "message": f"Processed {processed} leads, found {found} emails",
    }


def email_stats(db: Session) -> dict:
    has_website = (UniqueLead.website.isnot(None), UniqueLead.website != "")
    total = db.query(UniqueLead).count()
    with_email = db.query(UniqueLead).filter(UniqueLead.email.isnot(None)).count()
    with_website = db.query(UniqueLead).filter(*has_website).count()
    without_email = db.query(UniqueLead).filter(UniqueLead.email.is_(None), *has_website).count()
    return {
        "total_leads": total,
        "leads_with_email": with_email,
        "leads_with_website": with_website,
        "leads_without_email": without_email,
        "ready_to_process": without_email,
    }
