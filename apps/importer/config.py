# apps/importer/config.py
from __future__ import annotations

import logging
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings

BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/125.0.0.0 Safari/537.36"
)

LOGGER_NAME = "recipepal.importer"


class Settings(BaseSettings):
    # network
    fetch_timeout: float = 6.0        # seconds, per page fetch / per probe
    max_verify_candidates: int = 12   # ranked candidates probed before giving up
    max_redirects: int = 5
    user_agent: str = BROWSER_UA

    # observability
    log_level: str = "INFO"

    # import flow: stock art used when nothing else produced an image
    placeholder_image_urls: List[str] = [
        "https://placehold.co/1200x800/f6e4cf/5a3a2a?text=RecipePal",
        "https://placehold.co/1200x800/f8efe1/a44a26?text=RecipePal",
    ]

    @field_validator("placeholder_image_urls")
    @classmethod
    def _need_placeholder(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("at least one placeholder image url is required")
        return v

    class Config:
        env_file = ".env"
        env_prefix = "IMPORTER_"


settings = Settings()


def get_logger(suffix: str = "") -> logging.Logger:
    name = f"{LOGGER_NAME}.{suffix}" if suffix else LOGGER_NAME
    log = logging.getLogger(name)
    log.setLevel(settings.log_level.upper())
    return log
