"""Storage layer for Calming Notes."""

from calming_notes.storage.note_repository import NoteRepository

__all__ = [
    "NoteRepository",
]
