import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, status

from app.core.config import KEY_MAP, settings
from app.core.security import get_current_user
from app.models.user import User
from app.schemas.settings import ApiKeyUpdate, ApiKeyTestResponse, SettingsResponse
from app.services import places_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])

HUNTER_ACCOUNT_URL = "https://api.hunter.io/v2/account"


def _settings_response() -> SettingsResponse:
    masked = settings.get_all_api_keys_masked()
    return SettingsResponse(
        google_places=masked["google_places"],
        hunter=masked["hunter"],
    )


@router.get("", response_model=SettingsResponse)
def get_settings(
    current_user: User = Depends(get_current_user),
):
    """Return which API keys are configured with masked values."""
    return _settings_response()


@router.put("/keys", response_model=SettingsResponse)
def update_keys(
    payload: ApiKeyUpdate,
    current_user: User = Depends(get_current_user),
):
    """Save new API keys and return updated masked status."""
    if payload.google_places is not None:
        settings.set_api_key("google_places", payload.google_places)
    if payload.hunter is not None:
        settings.set_api_key("hunter", payload.hunter)
    return _settings_response()


@router.post("/test/{service}", response_model=ApiKeyTestResponse)
async def test_api_key(
    service: str,
    current_user: User = Depends(get_current_user),
):
    """Test a specific API key by making a real API call."""
    if service not in KEY_MAP:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid service. Must be one of: {', '.join(KEY_MAP)}",
        )

    api_key = settings.get_api_key(service)
    if not api_key:
        return ApiKeyTestResponse(
            service=service,
            status="invalid",
            message=f"{service} API key is not configured.",
        )

    if service == "google_places":
        return ApiKeyTestResponse(**await places_service.test_api_key(api_key))

    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            response = await client.get(HUNTER_ACCOUNT_URL, params={"api_key": api_key})
            response.raise_for_status()
            data = response.json().get("data") or {}
        searches = (data.get("requests") or {}).get("searches") or {}
        return ApiKeyTestResponse(
            service=service,
            status="valid",
            message=(
                f"Hunter.io API key is valid. {searches.get('used', 0)} of "
                f"{searches.get('available', 0)} searches used."
            ),
        )
    except httpx.HTTPStatusError as e:
        logger.warning(f"API key test failed for {service}: HTTP {e.response.status_code}")
        return ApiKeyTestResponse(
            service=service,
            status="invalid",
            message=f"API key validation failed: HTTP {e.response.status_code} - {e.response.text[:200]}",
        )
    except Exception as e:
        logger.error(f"API key test error for {service}: {e}")
        return ApiKeyTestResponse(
            service=service,
            status="invalid",
            message=f"API key validation failed: {str(e)}",
        )
