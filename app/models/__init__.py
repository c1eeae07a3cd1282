from app.models.user import User
from app.models.project import Project
from app.models.search_term import SearchTerm
from app.models.temp_scraped_lead import TempScrapedLead
from app.models.unique_lead import UniqueLead
from app.models.project_lead import ProjectLead
from app.models.lead import Lead
from app.models.app_setting import AppSetting

__all__ = [
    "User",
    "Project",
    "SearchTerm",
    "TempScrapedLead",
    "UniqueLead",
    "ProjectLead",
    "Lead",
    "AppSetting",
]
