"""SQLAlchemy database models for Calming Notes."""
from typing import Optional

from sqlalchemy import Column, Integer, Index, String, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from calming_notes.config import config

# Create base class for SQLAlchemy models
Base = declarative_base()


class DBNote(Base):
    """Database model for a note."""
    __tablename__ = "notes"
    id = Column(String(64), primary_key=True)
    content_json = Column(Text, nullable=False)
    created_at = Column(Integer, nullable=False)
    updated_at = Column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_notes_updated_at", updated_at.desc()),
    )

    def __repr__(self) -> str:
        """Return string representation of note."""
        return f"<Note(id='{self.id}', updated_at={self.updated_at})>"


def create_db_engine(db_url: Optional[str] = None) -> Engine:
    """Create an engine for the notes database file.

    Every connection runs in WAL mode with NORMAL synchronous writes, which
    keeps autosave writes cheap while staying crash safe.
    """
    engine = create_engine(db_url or config.get_db_url())

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    return engine


def init_db(engine: Optional[Engine] = None) -> Engine:
    """Create the notes table and its index if they do not exist.

    Idempotent: repeated calls leave exactly one table and one index.
    """
    if engine is None:
        engine = create_db_engine()
    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Optional[Engine] = None):
    """Get a session factory for the database."""
    if engine is None:
        engine = create_db_engine()
    return sessionmaker(bind=engine, expire_on_commit=False)
