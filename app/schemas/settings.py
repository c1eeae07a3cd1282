from typing import Optional
from pydantic import BaseModel


class ApiKeyUpdate(BaseModel):
    google_places: Optional[str] = None
    hunter: Optional[str] = None


class ApiKeyStatus(BaseModel):
    configured: bool
    masked_key: str


class ApiKeyTestResponse(BaseModel):
    service: str
    status: str  # "valid" or "invalid"
    message: str


class SettingsResponse(BaseModel):
    google_places: ApiKeyStatus
    hunter: ApiKeyStatus
