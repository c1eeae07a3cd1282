import logging
import secrets
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.schemas.lead import FindEmailsResponse
from app.services import email_enrichment_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """Scheduler calls authenticate with ``Authorization: Bearer <CRON_SECRET>``."""
    expected = settings.CRON_SECRET
    if not expected or not authorization or not secrets.compare_digest(
        authorization.encode("utf-8"), f"Bearer {expected}".encode("utf-8")
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


@router.get("/find-emails", response_model=FindEmailsResponse, dependencies=[Depends(verify_cron_secret)])
async def cron_find_emails(db: Session = Depends(get_db)):
    """Scheduled email discovery over a fixed batch of unique leads."""
    logger.info("[CRON] Starting email finder job...")
    summary = await email_enrichment_service.find_emails_for_leads(
        db,
        limit=settings.CRON_EMAIL_BATCH_SIZE,
        hunter_api_key=settings.get_api_key("hunter") or None,
        delay=settings.EMAIL_FINDER_DELAY_SECONDS,
        timeout=settings.EMAIL_FETCH_TIMEOUT_SECONDS,
    )
    logger.info(f"[CRON] Complete: processed {summary['processed']}, found {summary['found']}")
    return FindEmailsResponse(**summary, timestamp=datetime.now(timezone.utc))
