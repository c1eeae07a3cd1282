import csv
import io
from typing import Dict, List, Optional

from app.models.lead import Lead

# Maps internal field keys → CSV header name + extractor
FIELD_DEFINITIONS: Dict[str, Dict] = {
    "business_name": {"header": "Business Name", "get": lambda l: l.business_name or ""},
    "address": {"header": "Address", "get": lambda l: l.address or ""},
    "phone": {"header": "Phone Number", "get": lambda l: l.phone or ""},
    "email": {"header": "Email", "get": lambda l: l.email or ""},
    "website": {"header": "Website URL", "get": lambda l: l.website or ""},
    "google_url": {"header": "Google Maps URL", "get": lambda l: l.google_url or ""},
    "rating": {
        "header": "Rating",
        "get": lambda l: f"{l.rating:g}" if l.rating is not None else "",
    },
    "review_count": {
        "header": "Reviews",
        "get": lambda l: str(l.review_count) if l.review_count is not None else "",
    },
}

ALL_FIELD_KEYS = list(FIELD_DEFINITIONS.keys())


def get_export_fields(custom_fields: Optional[List[str]] = None) -> List[str]:
    """Return the requested field keys in order, or every field."""
    if custom_fields:
        fields = [f for f in custom_fields if f in FIELD_DEFINITIONS]
        if fields:
            return fields
    return ALL_FIELD_KEYS


def generate_csv(leads: List[Lead], custom_fields: Optional[List[str]] = None) -> bytes:
    """Generate a CSV of project leads.

    Returns UTF-8 BOM encoded CSV bytes ready for download.
    """
    fields = get_export_fields(custom_fields)
    fieldnames = [FIELD_DEFINITIONS[f]["header"] for f in fields]

    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=fieldnames, quoting=csv.QUOTE_ALL)
    writer.writeheader()

    for lead in leads:
        row = {
            FIELD_DEFINITIONS[f]["header"]: FIELD_DEFINITIONS[f]["get"](lead)
            for f in fields
        }
        writer.writerow(row)

    csv_content = output.getvalue()
    output.close()

    # UTF-8 BOM encoding for Excel compatibility
    bom = b"\xef\xbb\xbf"
    return bom + csv_content.encode("utf-8")
