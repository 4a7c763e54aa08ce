"""User preferences (colour scheme and font size).

Stored as a small JSON file next to the notes database but independent of
it; loaded once at startup. Failures to read or write the file are logged
and never interrupt the app: missing or unreadable settings fall back to
defaults.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from calming_notes.config import config

logger = logging.getLogger(__name__)

ColorScheme = Literal["light", "dark"]

MIN_FONT_SIZE = 8
MAX_FONT_SIZE = 48


class Settings(BaseModel):
    color_scheme: ColorScheme = "light"
    font_size: int = Field(default=16, ge=MIN_FONT_SIZE, le=MAX_FONT_SIZE)

    model_config = {"validate_assignment": True, "extra": "ignore"}


class SettingsStore:
    """Loads and persists ``Settings``.

    Args:
        path: JSON file location. If None, uses config.get_settings_path().
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else config.get_settings_path()
        self.settings = Settings()
        self._lock = threading.Lock()

    def load(self) -> Settings:
        """Read settings from disk, keeping defaults for anything invalid."""
        if not self.path.exists():
            logger.debug(f"No settings file at {self.path}, using defaults")
            return self.settings
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            loaded = Settings.model_validate(data)
        except (OSError, json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning(f"Failed to load settings from {self.path}: {e}")
            return self.settings
        with self._lock:
            self.settings = loaded
        return loaded

    def set_color_scheme(self, scheme: ColorScheme) -> Settings:
        with self._lock:
            self.settings = Settings(
                color_scheme=scheme, font_size=self.settings.font_size
            )
        self._save()
        return self.settings

    def set_font_size(self, size: int) -> Settings:
        with self._lock:
            self.settings = Settings(
                color_scheme=self.settings.color_scheme, font_size=size
            )
        self._save()
        return self.settings

    def toggle_theme(self) -> Settings:
        """Switch between the light and dark colour schemes."""
        new_scheme = "dark" if self.settings.color_scheme == "light" else "light"
        return self.set_color_scheme(new_scheme)

    def _save(self) -> bool:
        with self._lock:
            payload = self.settings.model_dump_json(indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(payload, encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to save settings to {self.path}: {e}")
            return False
        return True
