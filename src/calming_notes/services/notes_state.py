"""Observable application state for the note list and the open note.

``NotesState`` sits between a UI and the ``NoteRepository``. All state lives
in an immutable ``NotesSnapshot``; every operation replaces the snapshot and
publishes the new one to subscribers.
"""

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple

from calming_notes.config import config
from calming_notes.exceptions import NoteNotFoundError, NotesError
from calming_notes.models.schema import Note, NotePreview
from calming_notes.storage.note_repository import NoteRepository

logger = logging.getLogger(__name__)

Subscriber = Callable[["NotesSnapshot"], None]


class ListStatus(str, Enum):
    """Lifecycle of the note list."""

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


class NoteStatus(str, Enum):
    """Lifecycle of the note opened in the editor."""

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


@dataclass(frozen=True)
class UndoBatch:
    """Full copies of bulk-deleted notes, kept until the undo window closes."""

    notes: Tuple[Note, ...]
    expires_at: float

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(n.id for n in self.notes)


@dataclass(frozen=True)
class NotesSnapshot:
    """Immutable view of the application state.

    ``is_dirty`` is set when the open note was saved but the preview list
    was not reloaded, so list previews may be stale until the next refresh.
    ``version`` increases with every published snapshot.
    """

    status: ListStatus = ListStatus.IDLE
    notes: Tuple[NotePreview, ...] = ()
    error: Optional[str] = None
    current_note: Optional[Note] = None
    note_status: NoteStatus = NoteStatus.IDLE
    note_error: Optional[str] = None
    selected_notes: FrozenSet[str] = field(default_factory=frozenset)
    search_query: str = ""
    is_dirty: bool = False
    pending_undo: Tuple[str, ...] = ()
    version: int = 0

    @property
    def is_selection_mode(self) -> bool:
        return bool(self.selected_notes)

    @property
    def is_loading(self) -> bool:
        return self.status is ListStatus.LOADING or self.note_status is NoteStatus.LOADING


def _error_message(error: Exception, default: str) -> str:
    if isinstance(error, NotesError):
        return error.message
    return str(error) or default


class NotesState:
    """In-memory cache of note previews, the open note and the selection.

    Args:
        repository: The note store.
        undo_window_seconds: How long a bulk delete stays undoable. If None,
            uses config.undo_window_seconds.
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        repository: NoteRepository,
        undo_window_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._repository = repository
        self._undo_window = undo_window_seconds or config.undo_window_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._snapshot = NotesSnapshot()
        self._subscribers: List[Subscriber] = []
        self._undo: Optional[UndoBatch] = None
        self._has_loaded = False

    # =========================================================================
    # Observation
    # =========================================================================

    @property
    def snapshot(self) -> NotesSnapshot:
        with self._lock:
            return self._snapshot

    @property
    def notes(self) -> Tuple[NotePreview, ...]:
        return self.snapshot.notes

    @property
    def current_note(self) -> Optional[Note]:
        return self.snapshot.current_note

    @property
    def selected_notes(self) -> FrozenSet[str]:
        return self.snapshot.selected_notes

    @property
    def is_selection_mode(self) -> bool:
        return self.snapshot.is_selection_mode

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback invoked with every new snapshot.

        Returns:
            A function that removes the subscription.
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, snapshot: NotesSnapshot) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"State subscriber {callback!r} failed: {e}", exc_info=True)

    def _replace(self, **changes) -> NotesSnapshot:
        """Swap in a new snapshot. Caller must hold the lock."""
        self._snapshot = replace(
            self._snapshot, version=self._snapshot.version + 1, **changes
        )
        return self._snapshot

    def _update(self, **changes) -> NotesSnapshot:
        with self._lock:
            snapshot = self._replace(**changes)
        self._notify(snapshot)
        return snapshot

    def _settled_status(self) -> ListStatus:
        """Status to return to after an error. Caller must hold the lock."""
        return ListStatus.LOADED if self._has_loaded else ListStatus.IDLE

    def _fail(self, error: Exception, default: str) -> str:
        message = _error_message(error, default)
        logger.error(f"{default}: {error}")
        self._update(status=ListStatus.ERROR, error=message)
        return message

    def _publish_notes(self, notes: List[NotePreview], **changes) -> None:
        with self._lock:
            self._has_loaded = True
            snapshot = self._replace(
                status=ListStatus.LOADED,
                notes=tuple(notes),
                error=None,
                **changes,
            )
        self._notify(snapshot)

    # =========================================================================
    # List operations
    # =========================================================================

    def load_notes(self) -> None:
        """Reload every note preview. Also the retry action after an error."""
        self._update(status=ListStatus.LOADING, error=None)
        try:
            notes = self._repository.get_all_notes()
        except NotesError as e:
            self._fail(e, "Failed to load notes")
            return
        self._publish_notes(notes, search_query="", is_dirty=False)

    def create_note(self) -> str:
        """Create an empty note, refresh the list and make the note current.

        Returns:
            The new note's ID, for navigating to the editor.

        Raises:
            NotesError: If the store fails; the error is also recorded in state.
        """
        self._update(status=ListStatus.LOADING, error=None)
        try:
            note = self._repository.create_note()
            notes = self._repository.get_all_notes()
        except NotesError as e:
            self._fail(e, "Failed to create note")
            raise
        self._publish_notes(
            notes,
            current_note=note,
            note_status=NoteStatus.LOADED,
            note_error=None,
            search_query="",
            is_dirty=False,
        )
        logger.info(f"Created note {note.id}")
        return note.id

    def search_notes(self, query: str) -> None:
        """Filter the list by a substring of the stored content.

        The list status never passes through LOADING, so a search box bound
        to this state keeps its focus while typing.
        """
        with self._lock:
            self._replace(search_query=query)
        try:
            notes = self._repository.search_notes(query)
        except NotesError as e:
            self._fail(e, "Failed to search notes")
            return
        self._publish_notes(notes)

    def delete_note(self, note_id: str) -> bool:
        """Delete one note and refresh the list.

        Returns:
            True if the note existed and was deleted.
        """
        self._update(status=ListStatus.LOADING, error=None)
        try:
            deleted = self._repository.delete_note(note_id)
            notes = self._repository.get_all_notes()
        except NotesError as e:
            self._fail(e, "Failed to delete note")
            return False

        with self._lock:
            changes = {"selected_notes": self._snapshot.selected_notes - {note_id}}
            current = self._snapshot.current_note
            if current is not None and current.id == note_id:
                changes.update(
                    current_note=None, note_status=NoteStatus.IDLE, note_error=None
                )
        self._publish_notes(notes, search_query="", is_dirty=False, **changes)
        return deleted

    def clear_error(self) -> None:
        with self._lock:
            status = self._snapshot.status
            if status is ListStatus.ERROR:
                status = self._settled_status()
            snapshot = self._replace(status=status, error=None, note_error=None)
        self._notify(snapshot)

    # =========================================================================
    # Open note
    # =========================================================================

    def load_note(self, note_id: str) -> Optional[Note]:
        """Open a note for editing.

        A missing note puts the note state into ERROR with "Note not found".
        """
        self._update(note_status=NoteStatus.LOADING, note_error=None)
        try:
            note = self._repository.get_note(note_id)
            if note is None:
                raise NoteNotFoundError(note_id)
        except NotesError as e:
            message = _error_message(e, "Failed to load note")
            logger.warning(f"Could not open note {note_id}: {e}")
            self._update(
                note_status=NoteStatus.ERROR, note_error=message, current_note=None
            )
            return None
        self._update(current_note=note, note_status=NoteStatus.LOADED, note_error=None)
        return note

    def update_note(self, note_id: str, content: str) -> bool:
        """Persist new content for a note without reloading the list.

        The open note is updated in memory and the snapshot is marked dirty;
        list previews refresh on the next ``load_notes``.

        Returns:
            True if the content was written to the store.
        """
        try:
            stored = self._repository.update_note(note_id, content)
        except NotesError as e:
            message = _error_message(e, "Failed to update note")
            logger.error(f"Failed to save note {note_id}: {e}")
            self._update(error=message)
            return False

        saved = stored is not None
        with self._lock:
            current = self._snapshot.current_note
            if current is None or current.id != note_id:
                snapshot = self._replace(is_dirty=self._snapshot.is_dirty or saved)
            elif saved:
                snapshot = self._replace(current_note=stored, is_dirty=True)
            else:
                # Deleted underneath the editor; keep the text on screen
                snapshot = self._replace(
                    note_status=NoteStatus.ERROR, note_error="Note not found"
                )
        self._notify(snapshot)
        if not saved:
            logger.warning(f"Note {note_id} vanished while being edited")
        return saved

    def close_note(self) -> None:
        """Forget the open note."""
        self._update(current_note=None, note_status=NoteStatus.IDLE, note_error=None)

    # =========================================================================
    # Selection
    # =========================================================================

    def toggle_note_selection(self, note_id: str) -> None:
        with self._lock:
            selected = set(self._snapshot.selected_notes)
            if note_id in selected:
                selected.remove(note_id)
            else:
                selected.add(note_id)
            snapshot = self._replace(selected_notes=frozenset(selected))
        self._notify(snapshot)

    def select_note(self, note_id: str) -> None:
        """Start selection mode with exactly this note selected (long press)."""
        self._update(selected_notes=frozenset({note_id}))

    def clear_selection(self) -> None:
        self._update(selected_notes=frozenset())

    # =========================================================================
    # Bulk delete and undo
    # =========================================================================

    def delete_selected_notes(self) -> int:
        """Delete every selected note, keeping full copies for undo.

        The deletion is a single store transaction: either all selected
        notes are removed or none are.

        Returns:
            Number of notes deleted.

        Raises:
            BulkOperationError: If the store rejects the deletion. The
                selection is kept so the user can retry.
        """
        selected = sorted(self.selected_notes)
        if not selected:
            return 0

        self._update(status=ListStatus.LOADING, error=None)
        try:
            retained = self._repository.get_notes(selected)
            deleted = self._repository.delete_notes(selected)
            notes = self._repository.get_all_notes()
        except NotesError as e:
            self._fail(e, "Failed to delete notes")
            raise

        batch = UndoBatch(notes=tuple(retained), expires_at=self._clock() + self._undo_window)
        with self._lock:
            self._undo = batch
            changes = {}
            current = self._snapshot.current_note
            if current is not None and current.id in selected:
                changes.update(
                    current_note=None, note_status=NoteStatus.IDLE, note_error=None
                )
        self._publish_notes(
            notes,
            selected_notes=frozenset(),
            pending_undo=batch.ids,
            search_query="",
            is_dirty=False,
            **changes,
        )
        logger.info(f"Deleted {deleted} selected notes")
        return deleted

    def undo_delete(self, note_ids: Iterable[str]) -> int:
        """Restore notes from the most recent bulk delete.

        Restored notes keep their original ID, content, created_at and
        updated_at, so they return to their previous position in the list.

        Returns:
            Number of notes restored; 0 once the undo window has closed.
        """
        wanted = set(note_ids)
        with self._lock:
            batch = self._undo
            if batch is None:
                return 0
            if self._clock() > batch.expires_at:
                logger.info("Undo window closed; deleted notes are gone")
                self._undo = None
                snapshot = self._replace(pending_undo=())
                expired = True
            else:
                expired = False
        if expired:
            self._notify(snapshot)
            return 0

        to_restore = [n for n in batch.notes if n.id in wanted]
        if not to_restore:
            return 0

        self._update(status=ListStatus.LOADING, error=None)
        try:
            restored = self._repository.restore_notes(to_restore)
            notes = self._repository.get_all_notes()
        except NotesError as e:
            self._fail(e, "Failed to restore notes")
            raise

        remaining = tuple(n for n in batch.notes if n.id not in wanted)
        with self._lock:
            self._undo = UndoBatch(remaining, batch.expires_at) if remaining else None
        self._publish_notes(
            notes,
            pending_undo=tuple(n.id for n in remaining),
            search_query="",
            is_dirty=False,
        )
        logger.info(f"Restored {restored} deleted notes")
        return restored

    def discard_undo(self) -> None:
        """Drop the retained copies once the undo prompt is dismissed."""
        with self._lock:
            self._undo = None
            snapshot = self._replace(pending_undo=())
        self._notify(snapshot)
