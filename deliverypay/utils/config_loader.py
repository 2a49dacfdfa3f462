"""
Settings store for the ERPNext connection
"""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://wellcreek.boraerp.co.ke"
SETTINGS_PATH_ENV = "DELIVERYPAY_SETTINGS_PATH"


class ERPSettings(BaseModel):
    """ERPNext connection settings"""

    base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    api_secret: str = ""
    use_proxy: bool = False
    proxy_url: str = ""
    # Push "Completed" to the Sales Order when a collection succeeds
    push_order_status: bool = False

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_secret)


def default_settings_path() -> Path:
    configured = os.getenv(SETTINGS_PATH_ENV)
    if configured:
        return Path(configured)
    return Path(__file__).parent.parent.parent / "config" / "settings.yml"


class SettingsStore:
    """
    Load/save ERPSettings as YAML.

    A missing file yields the defaults; a file that does not match the schema
    raises pydantic's ValidationError.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else default_settings_path()

    def load(self) -> ERPSettings:
        if not self.path.exists():
            logger.info(f"No settings file at {self.path}, using defaults")
            return ERPSettings()

        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        try:
            settings = ERPSettings(**data)
            logger.info(f"Successfully loaded settings from {self.path}")
            return settings
        except ValidationError as e:
            logger.error(f"Settings validation failed: {e}")
            raise

    def save(self, settings: ERPSettings) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(settings.model_dump(), f, sort_keys=False)
        logger.info(f"Saved settings to {self.path}")
