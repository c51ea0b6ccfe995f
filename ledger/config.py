import json
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from .errors import ConfigurationError
from .models import AppSettings
from .wheel_config import default_app_settings

# Load environment variables from .env file
load_dotenv()

APP_NAME = "Spin Ledger API"
APP_VERSION = "1.0.0"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Timezone used for the daily paid-spin counter and daily rewards
LEDGER_TIMEZONE = os.getenv("LEDGER_TIMEZONE", "Asia/Kolkata")

# Bounded retry applied by API callers when a commit hits a concurrent write
MAX_CONFLICT_RETRIES = int(os.getenv("MAX_CONFLICT_RETRIES", "3"))

# Optional JSON file overriding the default app settings
APP_SETTINGS_FILE = os.getenv("APP_SETTINGS_FILE", "")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


class AppConfigSource:
    """Hands out immutable settings snapshots.

    Without a settings file the defaults are used. ``reload()`` re-reads the
    file; snapshots already handed out are unaffected.
    """

    def __init__(self, settings: Optional[AppSettings] = None, path: Optional[str] = None):
        self.path = path
        self._settings = settings or self._load()

    def snapshot(self) -> AppSettings:
        return self._settings

    def reload(self) -> AppSettings:
        self._settings = self._load()
        return self._settings

    def _load(self) -> AppSettings:
        if not self.path:
            return default_app_settings()
        try:
            with open(self.path, encoding="utf-8") as f:
                overrides = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read app settings from {self.path}: {e}") from e

        base = default_app_settings().model_dump()
        base.update(overrides.get("settings", overrides))
        try:
            settings = AppSettings.model_validate(base)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid app settings in {self.path}: {e}") from e
        logger.info("Loaded app settings from %s", self.path)
        return settings
