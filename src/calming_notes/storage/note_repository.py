"""Repository for note storage and retrieval."""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional

from sqlalchemy import delete, func, select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from calming_notes.config import config
from calming_notes.exceptions import (
    BulkOperationError,
    DatabaseUnavailableError,
    ErrorCode,
    StorageError,
)
from calming_notes.models.db_models import (
    DBNote,
    create_db_engine,
    get_session_factory,
    init_db,
)
from calming_notes.models.document import extract_preview
from calming_notes.models.schema import (
    EMPTY_DOCUMENT,
    Note,
    NotePreview,
    generate_id,
    next_timestamp,
)
from calming_notes.observability import traced

logger = logging.getLogger(__name__)


class NoteRepository:
    """Single-table note store backed by an SQLite file.

    The database is opened lazily: every public operation calls ``init()``
    first, so callers never manage the connection lifecycle. Content is
    stored as an opaque JSON string; previews are derived on every read.
    """

    def __init__(
        self,
        db_url: Optional[str] = None,
        engine: Optional[Engine] = None,
        preview_length: Optional[int] = None,
    ):
        """Initialize the repository.

        Args:
            db_url: SQLAlchemy URL of the database file. If None, uses
                    config.get_db_url() when the store is first opened.
            engine: Pre-configured SQLAlchemy engine. When provided it is
                    used directly and db_url is ignored.
            preview_length: Maximum preview length. If None, uses
                    config.preview_length.
        """
        self._db_url = db_url
        self.engine: Optional[Engine] = engine
        self.session_factory = None
        self.preview_length = preview_length or config.preview_length
        self._init_lock = threading.Lock()
        self._initialized = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def init(self) -> None:
        """Open the database and ensure the notes table and index exist.

        Safe to call repeatedly and from several threads; only the first
        successful call does any work.

        Raises:
            DatabaseUnavailableError: If the database cannot be opened.
        """
        if self._initialized:
            return
        with self._init_lock:
            if self._initialized:
                return
            db_url = self._db_url
            owns_engine = self.engine is None
            try:
                if self.engine is None:
                    db_url = db_url or config.get_db_url()
                    self.engine = create_db_engine(db_url)
                init_db(self.engine)
            except (SQLAlchemyError, OSError) as e:
                logger.error(f"Failed to open notes database: {e}")
                # Let a later retry rebuild the engine from scratch
                if owns_engine:
                    self.engine = None
                raise DatabaseUnavailableError(
                    "Could not open the notes database",
                    db_url=db_url,
                    original_error=e,
                ) from e
            self.session_factory = get_session_factory(self.engine)
            self._initialized = True
            logger.info(f"NoteRepository initialized: db_url={self.engine.url}")

    def close(self) -> None:
        """Release all pooled connections. The store reopens on next use."""
        with self._init_lock:
            if self.engine is not None:
                self.engine.dispose()
            self._initialized = False

    @contextmanager
    def _session(
        self,
        operation: str,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
    ) -> Iterator[Session]:
        """Open a session, translating database failures into StorageError."""
        self.init()
        try:
            with self.session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Note store {operation} failed: {e}")
            raise StorageError(
                f"Failed to {operation.replace('_', ' ')}",
                operation=operation,
                code=code,
                original_error=e,
            ) from e

    # =========================================================================
    # CRUD
    # =========================================================================

    @traced("create_note")
    def create_note(self, content: Optional[str] = None) -> Note:
        """Create and persist a new note.

        Args:
            content: Serialized document. Empty or omitted content is
                     replaced by the canonical empty document.

        Returns:
            The stored note, with created_at == updated_at.
        """
        ts = next_timestamp()
        note = Note(
            id=generate_id(),
            content=content or EMPTY_DOCUMENT,
            created_at=ts,
            updated_at=ts,
        )
        with self._session("create_note", ErrorCode.STORAGE_WRITE_FAILED) as session:
            session.add(self._model_to_db_note(note))
            session.commit()
        logger.debug(f"Created note {note.id}")
        return note

    @traced("update_note")
    def update_note(self, note_id: str, content: str) -> Optional[Note]:
        """Replace a note's content and bump its updated_at.

        Updating a note that no longer exists is a no-op, so a debounced
        autosave racing a delete is harmless.

        Returns:
            The note as stored, or None if the note does not exist.
        """
        with self._session("update_note", ErrorCode.STORAGE_WRITE_FAILED) as session:
            row = session.execute(
                select(DBNote.created_at, DBNote.updated_at).where(DBNote.id == note_id)
            ).first()
            if row is None:
                logger.debug(f"Ignoring update for missing note {note_id}")
                return None
            note = Note(
                id=note_id,
                content=content or EMPTY_DOCUMENT,
                created_at=row.created_at,
                updated_at=next_timestamp(row.updated_at),
            )
            session.execute(
                update(DBNote)
                .where(DBNote.id == note_id)
                .values(content_json=note.content, updated_at=note.updated_at)
            )
            session.commit()
        return note

    @traced("get_note")
    def get_note(self, note_id: str) -> Optional[Note]:
        """Get a note by ID.

        Returns:
            Note object if found, None otherwise
        """
        with self._session("get_note") as session:
            db_note = session.get(DBNote, note_id)
            if db_note is None:
                return None
            return self._db_note_to_model(db_note)

    def get_notes(self, note_ids: Iterable[str]) -> List[Note]:
        """Get multiple notes in a single query.

        Returns:
            Notes in request order. Missing IDs are skipped.
        """
        ids = list(dict.fromkeys(note_ids))
        if not ids:
            return []
        with self._session("get_notes") as session:
            db_notes = session.scalars(select(DBNote).where(DBNote.id.in_(ids))).all()
            by_id = {n.id: self._db_note_to_model(n) for n in db_notes}
        return [by_id[nid] for nid in ids if nid in by_id]

    @traced("get_all_notes")
    def get_all_notes(self) -> List[NotePreview]:
        """List previews of all notes, most recently updated first."""
        with self._session("get_all_notes") as session:
            rows = session.scalars(self._ordered(select(DBNote))).all()
            return [self._to_preview(row) for row in rows]

    @traced("delete_note")
    def delete_note(self, note_id: str) -> bool:
        """Permanently delete a note.

        Returns:
            True if a note was deleted.
        """
        with self._session("delete_note", ErrorCode.STORAGE_DELETE_FAILED) as session:
            result = session.execute(delete(DBNote).where(DBNote.id == note_id))
            session.commit()
        deleted = result.rowcount > 0
        if not deleted:
            logger.debug(f"Delete requested for missing note {note_id}")
        return deleted

    @traced("search_notes")
    def search_notes(self, query: str) -> List[NotePreview]:
        """Find notes whose stored JSON contains ``query``.

        Matching is a case-sensitive substring test on the raw serialized
        content, not on the extracted text. A blank query lists all notes.
        """
        if not query or not query.strip():
            return self.get_all_notes()
        with self._session("search_notes", ErrorCode.SEARCH_FAILED) as session:
            stmt = select(DBNote).where(func.instr(DBNote.content_json, query) > 0)
            rows = session.scalars(self._ordered(stmt)).all()
            return [self._to_preview(row) for row in rows]

    def count_notes(self) -> int:
        """Get total count of notes in the store."""
        with self._session("count_notes") as session:
            return session.scalar(select(func.count(DBNote.id))) or 0

    # =========================================================================
    # Bulk operations
    # =========================================================================

    @traced("delete_notes")
    def delete_notes(self, note_ids: List[str]) -> int:
        """Delete several notes in one transaction.

        Either every row is removed or, on failure, none are.

        Returns:
            Number of notes deleted (IDs that did not exist are not counted).

        Raises:
            BulkOperationError: If the input is empty or the transaction fails.
        """
        ids = list(dict.fromkeys(note_ids))
        if not ids:
            raise BulkOperationError(
                "No note IDs provided for deletion",
                operation="bulk_delete",
                code=ErrorCode.BULK_OPERATION_EMPTY_INPUT,
            )

        self.init()
        try:
            with self.session_factory() as session:
                result = session.execute(delete(DBNote).where(DBNote.id.in_(ids)))
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Bulk delete failed: {e}")
            raise BulkOperationError(
                f"Database deletion failed: {e}",
                operation="bulk_delete",
                total_count=len(ids),
                success_count=0,
                failed_ids=ids,
                original_error=e,
            ) from e

        logger.info(f"Bulk deleted {result.rowcount} notes")
        return result.rowcount

    @traced("restore_notes")
    def restore_notes(self, notes: List[Note]) -> int:
        """Re-insert previously deleted notes with their original IDs and timestamps.

        Notes whose ID is already present are left untouched.

        Returns:
            Number of notes inserted.

        Raises:
            BulkOperationError: If the transaction fails; nothing is restored.
        """
        if not notes:
            return 0

        self.init()
        restored = 0
        try:
            with self.session_factory() as session:
                for note in notes:
                    if session.get(DBNote, note.id) is not None:
                        logger.debug(f"Note {note.id} already present, not restoring")
                        continue
                    session.add(self._model_to_db_note(note))
                    restored += 1
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Restore failed: {e}")
            raise BulkOperationError(
                f"Restoring notes failed: {e}",
                operation="restore",
                total_count=len(notes),
                success_count=0,
                failed_ids=[n.id for n in notes],
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e

        logger.info(f"Restored {restored} of {len(notes)} notes")
        return restored

    # =========================================================================
    # Health
    # =========================================================================

    def check_database_health(self) -> Dict[str, Any]:
        """Run SQLite's integrity check and count the stored notes.

        Returns:
            Dict with keys healthy, sqlite_ok, note_count and issues.
        """
        issues: List[str] = []
        with self._session("check_database_health") as session:
            result = session.execute(text("PRAGMA integrity_check")).fetchone()
            sqlite_ok = result[0] == "ok"
            if not sqlite_ok:
                issues.append(f"SQLite integrity check failed: {result[0]}")
            note_count = session.scalar(select(func.count(DBNote.id))) or 0

        return {
            "healthy": sqlite_ok,
            "sqlite_ok": sqlite_ok,
            "note_count": note_count,
            "issues": issues,
        }

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _ordered(stmt):
        return stmt.order_by(DBNote.updated_at.desc(), DBNote.created_at.desc())

    def _to_preview(self, db_note: DBNote) -> NotePreview:
        return NotePreview(
            id=db_note.id,
            preview=extract_preview(db_note.content_json, self.preview_length),
            created_at=db_note.created_at,
            updated_at=db_note.updated_at,
        )

    @staticmethod
    def _db_note_to_model(db_note: DBNote) -> Note:
        return Note(
            id=db_note.id,
            content=db_note.content_json,
            created_at=db_note.created_at,
            updated_at=db_note.updated_at,
        )

    @staticmethod
    def _model_to_db_note(note: Note) -> DBNote:
        return DBNote(
            id=note.id,
            content_json=note.content,
            created_at=note.created_at,
            updated_at=note.updated_at,
        )
