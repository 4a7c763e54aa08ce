"""Application bootstrap: wires the store, state cache and settings together."""
import logging
from dataclasses import dataclass
from typing import Optional

from calming_notes.config import NotesConfig, config
from calming_notes.observability import configure_logging, is_logging_configured
from calming_notes.services.autosave import NoteEditorSession
from calming_notes.services.notes_state import NotesState
from calming_notes.settings import SettingsStore
from calming_notes.storage.note_repository import NoteRepository

logger = logging.getLogger(__name__)


@dataclass
class NotesApp:
    """Long-lived collaborators handed to the UI layer."""

    repository: NoteRepository
    state: NotesState
    settings: SettingsStore
    autosave_delay_ms: Optional[int] = None

    def open_editor(self, note_id: str) -> NoteEditorSession:
        """Open a note for editing with the configured autosave delay."""
        session = NoteEditorSession(self.state, note_id, self.autosave_delay_ms)
        session.open()
        return session

    def shutdown(self) -> None:
        self.repository.close()
        logger.info("Calming Notes shut down")


def create_app(
    cfg: Optional[NotesConfig] = None,
    log_level: int = logging.INFO,
) -> NotesApp:
    """Open the database, load settings and the note list.

    A database that cannot be opened does not abort startup: the list is
    left in the ERROR state and ``state.load_notes()`` is the retry.
    """
    cfg = cfg or config

    if not is_logging_configured():
        try:
            log_dir = configure_logging(log_dir=cfg.log_dir, level=log_level)
        except OSError as e:
            logging.basicConfig(level=log_level)
            logger.warning(f"Failed to configure file logging: {e}")
            log_dir = None
        if log_dir:
            logger.info(f"Persistent logging enabled: {log_dir}")

    logger.info(f"Starting Calming Notes {cfg.app_version}")
    repository = NoteRepository(
        db_url=cfg.get_db_url(), preview_length=cfg.preview_length
    )
    state = NotesState(repository, undo_window_seconds=cfg.undo_window_seconds)
    settings = SettingsStore(cfg.get_settings_path())
    settings.load()

    state.load_notes()
    snapshot = state.snapshot
    if snapshot.error:
        logger.error(f"Note list unavailable at startup: {snapshot.error}")
    else:
        logger.info(f"Loaded {len(snapshot.notes)} notes")
    return NotesApp(
        repository=repository,
        state=state,
        settings=settings,
        autosave_delay_ms=cfg.autosave_delay_ms,
    )
