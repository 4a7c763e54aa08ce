"""Tests for application startup."""
import logging

import pytest

from calming_notes.app import create_app
from calming_notes.config import NotesConfig
from calming_notes.observability import ROOT_LOGGER_NAME
from calming_notes.services.notes_state import ListStatus
from tests.fakes import block_doc


@pytest.fixture
def app_config(temp_dir):
    return NotesConfig(
        base_dir=temp_dir,
        database_path=temp_dir / "data" / "notes.db",
        settings_path=temp_dir / "data" / "settings.json",
        log_dir=temp_dir / "logs",
        autosave_delay_ms=60_000,
    )


@pytest.fixture
def app(app_config):
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    handlers = list(logger.handlers)
    app = create_app(app_config)
    yield app
    app.shutdown()
    for handler in logger.handlers[:]:
        if handler not in handlers:
            handler.close()
            logger.removeHandler(handler)


class TestCreateApp:
    """Tests for create_app."""

    def test_startup_loads_empty_list(self, app, app_config):
        assert app.state.snapshot.status is ListStatus.LOADED
        assert app.state.notes == ()
        assert app_config.get_absolute_path(app_config.database_path).exists()
        assert app.settings.settings.color_scheme == "light"

    def test_edit_round_trip(self, app):
        """Create, edit and close a note through the app's collaborators."""
        note_id = app.state.create_note()

        session = app.open_editor(note_id)
        session.on_content_change(block_doc("Morning pages"))
        session.close()

        assert app.state.notes[0].preview == "Morning pages"

    def test_existing_notes_loaded(self, app_config):
        first = create_app(app_config)
        first.state.create_note()
        first.shutdown()

        second = create_app(app_config)
        assert len(second.state.notes) == 1
        second.shutdown()
