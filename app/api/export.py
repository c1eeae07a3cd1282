import io
import logging
import re
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.api.projects import get_owned_project
from app.core.database import get_db
from app.core.security import get_current_user
from app.models.lead import Lead
from app.models.user import User
from app.services import export_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["export"])


@router.get("/{project_id}/export")
def export_leads(
    project_id: str,
    fields: Optional[str] = Query(None, description="Comma-separated field keys to include"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Download the project's leads as a CSV file."""
    project = get_owned_project(db, project_id, current_user)

    leads = (
        db.query(Lead)
        .filter(Lead.project_id == project_id)
        .order_by(Lead.business_name)
        .all()
    )

    field_list = [f.strip() for f in fields.split(",") if f.strip()] if fields else None
    csv_bytes = export_service.generate_csv(leads, custom_fields=field_list)

    slug = re.sub(r"[^a-z0-9]+", "-", project.name.lower()).strip("-") or "project"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    filename = f"{slug}_leads_{timestamp}.csv"
    logger.info(f"[{project_id}] Exporting {len(leads)} leads")

    return StreamingResponse(
        io.BytesIO(csv_bytes),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
