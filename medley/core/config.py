# medley/core/config.py
from typing import Optional
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings
import logging


class Settings(BaseSettings):
    """Basic application settings"""
    APP_NAME: str = "Medley Consult"

    # LLM settings
    OPENAI_API_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "OPENAI_APIKEY")
    )
    GPT_MODEL: str = "gpt-4o-mini"
    GPT_TEMPERATURE: float = 0.7
    GPT_TIMEOUT: int = 30
    GPT_MAX_RETRIES: int = 2

    # Consultation settings
    MEDLEY_SCHEMA_PATH: Optional[str] = None
    INFO_PAUSE_SECONDS: float = 0.4
    SESSION_TTL_MINUTES: int = 30

    # API settings
    MEDLEY_API_KEY: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "populate_by_name": True,
    }


# Settings as a module level singleton
settings = Settings()


def validate_required_settings() -> bool:
    """Check that all required settings are present"""
    missing = []

    if not settings.OPENAI_API_KEY:
        missing.append("OPENAI_API_KEY/OPENAI_APIKEY")

    if not settings.MEDLEY_API_KEY:
        missing.append("MEDLEY_API_KEY")

    if missing:
        logger = logging.getLogger(__name__)
        logger.warning(f"Missing environment variables: {', '.join(missing)}")
        logger.warning("The application may not be able to provide all features.")
        return False

    return True
