"""Lead identity resolution and project membership.

Every scraped business resolves to exactly one ``UniqueLead`` keyed by its
normalized (business name, address) pair. Projects reference unique leads
through ``ProjectLead`` rows, at most one per (project, unique lead).

Both tables carry a uniqueness constraint, so inserts run inside a SAVEPOINT
and a conflict falls back to the row that won, instead of a check-then-insert.
"""

import enum
import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.project_lead import ProjectLead
from app.models.unique_lead import UniqueLead

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

COPIED_FIELDS = ("phone", "website", "google_url", "rating", "review_count")


class LeadResolutionError(Exception):
    """A single record could not be resolved; callers skip it and move on."""


class LinkResult(str, enum.Enum):
    LINKED = "linked"
    ALREADY_LINKED = "already_linked"


def normalize_key(value: Optional[str]) -> str:
    """Case-fold and collapse whitespace; a missing value becomes ''."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip().casefold()


def _field(record: Any, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def _find(db: Session, name_key: str, address_key: str) -> Optional[UniqueLead]:
    return (
        db.query(UniqueLead)
        .filter(UniqueLead.name_key == name_key, UniqueLead.address_key == address_key)
        .first()
    )


def _mark_found_again(lead: UniqueLead) -> None:
    lead.times_found = (lead.times_found or 0) + 1
    lead.last_updated_at = datetime.now(timezone.utc)


def resolve(db: Session, record: Any) -> str:
    """Return the id of the UniqueLead for ``record``, creating it if new.

    ``record`` may be a mapping or any object with place attributes
    (``PlaceResult``, ``TempScrapedLead``). An existing lead has its
    ``times_found`` incremented. Changes are flushed, not committed: the
    caller owns the transaction.
    """
    business_name = (_field(record, "business_name") or "").strip()
    if not business_name:
        raise LeadResolutionError("Record has no business name")

    name_key = normalize_key(business_name)
    address_key = normalize_key(_field(record, "address"))

    try:
        existing = _find(db, name_key, address_key)
        if existing:
            _mark_found_again(existing)
            db.flush()
            return existing.id

        now = datetime.now(timezone.utc)
        lead = UniqueLead(
            business_name=business_name,
            address=_field(record, "address"),
            name_key=name_key,
            address_key=address_key,
            times_found=1,
            first_seen_at=now,
            last_updated_at=now,
            **{f: _field(record, f) for f in COPIED_FIELDS},
        )
        try:
            with db.begin_nested():
                db.add(lead)
        except IntegrityError:
            # Another writer created the same identity first
            existing = _find(db, name_key, address_key)
            if existing is None:
                raise LeadResolutionError(f"Could not create unique lead for {business_name!r}")
            _mark_found_again(existing)
            db.flush()
            return existing.id

        return lead.id
    except SQLAlchemyError as e:
        raise LeadResolutionError(f"Could not resolve {business_name!r}: {e}") from e


def is_member(db: Session, project_id: str, unique_lead_id: str) -> bool:
    return (
        db.query(ProjectLead.id)
        .filter(ProjectLead.project_id == project_id, ProjectLead.unique_lead_id == unique_lead_id)
        .first()
        is not None
    )


def link(
    db: Session,
    project_id: str,
    unique_lead_id: str,
    search_term_id: Optional[str] = None,
) -> LinkResult:
    """Attach a unique lead to a project; a second call reports ALREADY_LINKED."""
    membership = ProjectLead(
        project_id=project_id,
        unique_lead_id=unique_lead_id,
        search_term_id=search_term_id,
    )
    try:
        with db.begin_nested():
            db.add(membership)
    except IntegrityError:
        return LinkResult.ALREADY_LINKED
    return LinkResult.LINKED
