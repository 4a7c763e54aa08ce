"""Common test fixtures for Calming Notes."""

import tempfile
from pathlib import Path

import pytest

from calming_notes.config import config
from calming_notes.observability import metrics
from calming_notes.services.notes_state import NotesState
from calming_notes.storage.note_repository import NoteRepository
from tests.fakes import FakeClock, SnapshotRecorder


@pytest.fixture
def temp_dir():
    """Create a temporary directory for the database and settings."""
    with tempfile.TemporaryDirectory() as data_dir:
        yield Path(data_dir)


@pytest.fixture
def test_config(temp_dir, monkeypatch):
    """Configure with test paths (auto-restored even on crash)."""
    monkeypatch.setattr(config, "base_dir", temp_dir)
    monkeypatch.setattr(config, "database_path", temp_dir / "db" / "test_notes.db")
    monkeypatch.setattr(config, "settings_path", temp_dir / "settings.json")
    yield config


@pytest.fixture
def note_repository(test_config):
    """Create a test note repository on a fresh database file."""
    repository = NoteRepository()
    yield repository
    repository.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notes_state(note_repository, clock):
    """Create a NotesState over the test repository with a manual clock."""
    return NotesState(note_repository, undo_window_seconds=8, clock=clock)


@pytest.fixture
def recorder(notes_state):
    """Record every snapshot published by notes_state."""
    recorder = SnapshotRecorder()
    notes_state.subscribe(recorder)
    return recorder


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
