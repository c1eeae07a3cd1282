import logging
import secrets
from typing import Optional

from pydantic_settings import BaseSettings
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

# Service name -> settings field holding its key. Keys saved from the
# settings screen live in app_settings under the same field name.
KEY_MAP = {
    "google_places": "GOOGLE_PLACES_API_KEY",
    "hunter": "HUNTER_IO_API_KEY",
}


def _stored_key(name: str) -> Optional[str]:
    from app.core.database import SessionLocal
    from app.models.app_setting import AppSetting

    try:
        with SessionLocal() as db:
            row = db.get(AppSetting, name)
            return row.value if row and row.value else None
    except SQLAlchemyError as e:
        # app_settings only exists once startup has run create_all
        logger.debug(f"No stored value for {name}: {e}")
        return None


def _store_key(name: str, value: str) -> None:
    from app.core.database import SessionLocal
    from app.models.app_setting import AppSetting

    with SessionLocal() as db:
        row = db.get(AppSetting, name)
        if row is None:
            db.add(AppSetting(key=name, value=value))
        else:
            row.value = value
        db.commit()
    logger.info(f"Stored new value for {name}")


def mask_key(key: str) -> str:
    """Show at most the first and last three characters of a key."""
    if not key:
        return ""
    if len(key) <= 6:
        return "***"
    return f"{key[:3]}...{key[-3:]}"


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./lead_scraper.db"
    SECRET_KEY: str = secrets.token_urlsafe(32)
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440
    GOOGLE_PLACES_API_KEY: str = ""
    HUNTER_IO_API_KEY: str = ""
    CRON_SECRET: str = ""
    CORS_ORIGINS: str = "http://localhost:3000"

    # Places search
    PLACES_MAX_RESULTS: int = 20
    PLACES_DETAILS_DELAY_SECONDS: float = 0.1
    PLACES_TIMEOUT_SECONDS: float = 15.0

    # Scrape guard timer, 0 disables it
    SCRAPE_TIMEOUT_SECONDS: float = 240.0

    # Email discovery
    EMAIL_FETCH_TIMEOUT_SECONDS: float = 10.0
    EMAIL_FINDER_DELAY_SECONDS: float = 0.5
    CRON_EMAIL_BATCH_SIZE: int = 20

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def get_api_key(self, service: str) -> str:
        """Stored key for ``service`` if one was saved, else the environment value."""
        field = KEY_MAP.get(service)
        if field is None:
            return ""
        return _stored_key(field) or getattr(self, field)

    def set_api_key(self, service: str, value: str) -> None:
        field = KEY_MAP.get(service)
        if field is not None:
            _store_key(field, value.strip())

    def get_all_api_keys_masked(self) -> dict:
        keys = {service: self.get_api_key(service) for service in KEY_MAP}
        return {
            service: {"configured": bool(key), "masked_key": mask_key(key)}
            for service, key in keys.items()
        }


settings = Settings()
