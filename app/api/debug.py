import logging
import time

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import get_current_user
from app.models.temp_scraped_lead import TempScrapedLead
from app.models.user import User
from app.services.places_service import PlacesClient, get_search_provider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/debug", tags=["debug"])


@router.get("/scrape-test")
async def scrape_test(
    q: str = Query("coffee shops", min_length=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    provider: PlacesClient = Depends(get_search_provider),
):
    """Time one provider search and a staging table read, without saving anything."""
    start = time.monotonic()
    steps: list[str] = []

    def mark(message: str) -> None:
        steps.append(f"[{int((time.monotonic() - start) * 1000)}ms] {message}")

    try:
        mark(f'Calling places search for "{q}"...')
        places = await provider.search(q)
        mark(f"Places search returned {len(places)} results")

        mark("Checking staging table...")
        staged = db.query(func.count(TempScrapedLead.id)).scalar()
        mark(f"Staging table reachable, {staged} rows")

        return {
            "success": True,
            "total_time_ms": int((time.monotonic() - start) * 1000),
            "places_found": len(places),
            "log": steps,
            "sample_place": places[0].to_dict() if places else None,
        }
    except Exception as e:
        logger.warning(f"Scrape test failed: {e}")
        mark(f"ERROR: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "total_time_ms": int((time.monotonic() - start) * 1000),
                "error": str(e)[:200],
                "log": steps,
            },
        )
