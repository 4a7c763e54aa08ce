"""Debounced autosave for the note editor.

The editor reports every change; writes reach the store only after the
content has been quiet for ``delay_ms``. Only the latest content is kept:
a new change replaces the pending one and restarts the timer.
"""

import logging
import threading
from typing import Callable, Generic, Optional, TypeVar

from calming_notes.config import config
from calming_notes.services.notes_state import NotesState

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NOTHING = object()


class DebouncedWriter(Generic[T]):
    """Single pending-write slot drained by a ``threading.Timer``.

    Args:
        write: Called with the latest submitted value once the delay elapses
            without further submissions, or on ``flush()``.
        delay_ms: Quiescence period in milliseconds.
    """

    def __init__(self, write: Callable[[T], object], delay_ms: Optional[int] = None):
        self._write = write
        self._delay_ms = config.autosave_delay_ms if delay_ms is None else delay_ms
        self._lock = threading.Lock()
        # Held for the whole of a write, so flush() waits for a timer write in flight
        self._write_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending = _NOTHING
        self._closed = False

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return self._pending is not _NOTHING

    def submit(self, value: T) -> None:
        """Replace the pending value and restart the debounce timer."""
        with self._lock:
            if self._closed:
                logger.warning("Write submitted after the writer was closed; ignoring")
                return
            self._pending = value
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self._delay_ms / 1000, self._on_timer)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> bool:
        """Cancel the timer and write the pending value now.

        Waits for a timer write already in progress, so on return every
        submitted value has reached the store.

        Returns:
            True if a value was written.
        """
        with self._write_lock:
            value = self._take()
            if value is _NOTHING:
                return False
            self._write(value)
            return True

    def cancel(self) -> None:
        """Drop the pending value without writing it."""
        self._take()

    def close(self) -> bool:
        """Flush and refuse further submissions."""
        with self._lock:
            self._closed = True
        return self.flush()

    def _take(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            value, self._pending = self._pending, _NOTHING
            return value

    def _on_timer(self) -> None:
        with self._write_lock:
            with self._lock:
                if threading.current_thread() is not self._timer:
                    # Superseded by a later submit or a flush
                    return
                self._timer = None
                value, self._pending = self._pending, _NOTHING
            if value is _NOTHING:
                return
            try:
                self._write(value)
            except Exception as e:
                logger.error(f"Autosave failed: {e}", exc_info=True)


class NoteEditorSession:
    """Editing context for one note.

    Opens the note through ``NotesState``, debounces content changes into
    ``NotesState.update_note`` and, on ``close()``, flushes the pending
    write before refreshing the note list.

    Example:
        with NoteEditorSession(state, note_id) as session:
            session.on_content_change(new_json)
    """

    def __init__(
        self,
        state: NotesState,
        note_id: str,
        delay_ms: Optional[int] = None,
    ):
        self.state = state
        self.note_id = note_id
        self._writer: DebouncedWriter[str] = DebouncedWriter(self._save, delay_ms)
        self._last_saved: Optional[str] = None
        self._closed = False

    def open(self):
        note = self.state.load_note(self.note_id)
        if note is not None:
            self._last_saved = note.content
        return note

    def on_content_change(self, content: str) -> None:
        """Editor callback; schedules a save unless nothing changed."""
        if content == self._last_saved and not self._writer.has_pending:
            return
        self._writer.submit(content)

    @property
    def has_unsaved_changes(self) -> bool:
        return self._writer.has_pending

    def _save(self, content: str) -> None:
        if content == self._last_saved:
            return
        if self.state.update_note(self.note_id, content):
            self._last_saved = content

    def flush(self) -> bool:
        return self._writer.flush()

    def close(self) -> None:
        """Write any pending change, then refresh the list and forget the note."""
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        self.state.load_notes()
        self.state.close_note()

    def __enter__(self) -> "NoteEditorSession":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
