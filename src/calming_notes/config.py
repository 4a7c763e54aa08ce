"""Configuration module for Calming Notes."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from calming_notes import __version__
from calming_notes.exceptions import ConfigurationError

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config lives alongside the default data directory
_USER_ENV = Path.home() / ".calming-notes" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)


class NotesConfig(BaseModel):
    """Configuration for the note store and state cache."""

    # Base directory that relative paths are resolved against
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("CALMING_NOTES_BASE_DIR", "."))
    )
    # Single SQLite file holding the notes table
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("CALMING_NOTES_DATABASE_PATH", "data/notes.db")
        )
    )
    # Theme / font preferences, persisted independently of notes
    settings_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("CALMING_NOTES_SETTINGS_PATH", "data/settings.json")
        )
    )
    # Rotating log files are only written when this is set
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("CALMING_NOTES_LOG_DIR"))
            if os.getenv("CALMING_NOTES_LOG_DIR")
            else None
        )
    )
    # Quiescence period before an editor change is written to disk
    autosave_delay_ms: int = Field(
        default_factory=lambda: int(os.getenv("CALMING_NOTES_AUTOSAVE_DELAY_MS", "750"))
    )
    # How long a bulk delete can be undone (matches the undo toast)
    undo_window_seconds: float = Field(
        default_factory=lambda: float(
            os.getenv("CALMING_NOTES_UNDO_WINDOW_SECONDS", "8")
        )
    )
    preview_length: int = Field(
        default_factory=lambda: int(os.getenv("CALMING_NOTES_PREVIEW_LENGTH", "100"))
    )
    app_version: str = Field(default=__version__)

    @model_validator(mode="after")
    def _validate_timings(self) -> "NotesConfig":
        """Reject timing and length settings that would disable core behaviour."""
        if self.autosave_delay_ms < 0:
            raise ConfigurationError(
                "autosave_delay_ms must be >= 0", config_key="autosave_delay_ms"
            )
        if self.undo_window_seconds <= 0:
            raise ConfigurationError(
                "undo_window_seconds must be > 0", config_key="undo_window_seconds"
            )
        if self.preview_length < 1:
            raise ConfigurationError(
                "preview_length must be >= 1", config_key="preview_length"
            )
        if self.autosave_delay_ms > 10_000:
            logger.warning(
                "Autosave delay of %dms is long; edits may be lost on a crash",
                self.autosave_delay_ms,
            )
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"

    def get_settings_path(self) -> Path:
        """Get the absolute path of the settings file."""
        return self.get_absolute_path(self.settings_path)


# Create a global config instance
config = NotesConfig()
