"""Data models for Calming Notes."""

import json
import logging
import random
import threading
import time
import uuid
from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

UNTITLED_NOTE = "Untitled Note"

# Canonical empty document stored when a note is created without content
EMPTY_DOCUMENT = json.dumps(
    {"type": "doc", "content": [{"type": "paragraph", "content": []}]},
    separators=(",", ":"),
)


def now_ms() -> int:
    """Current wall-clock time in integer milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


# Last timestamp handed out by next_timestamp(), so that rapid successive
# writes still get strictly increasing updated_at values
_clock_lock = threading.Lock()
_last_timestamp = 0


def next_timestamp(after: int = 0) -> int:
    """Return a millisecond timestamp strictly greater than ``after``.

    Also strictly greater than every value previously returned in this
    process, so ``updated_at`` always moves forward even when the wall clock
    has not ticked between two writes.
    """
    global _last_timestamp

    with _clock_lock:
        ts = max(now_ms(), after + 1, _last_timestamp + 1)
        _last_timestamp = ts
        return ts


def _fallback_id() -> str:
    """Same-shaped identifier from a weaker random source, suffixed with the time."""
    chars = []
    for c in "xxxxxxxx-xxxx-4xxx-yxxx-xxxxxxxxxxxx":
        if c in "xy":
            r = random.randint(0, 15)
            v = r if c == "x" else (r & 0x3) | 0x8
            chars.append(format(v, "x"))
        else:
            chars.append(c)
    return "".join(chars) + f"-{now_ms()}"


def generate_id() -> str:
    """Generate a random note identifier.

    Returns:
        A canonical 36-character UUID4 string. If the UUID generator is not
        usable, a string of the same shape built from ``random`` with the
        current millisecond timestamp appended.
    """
    try:
        return str(uuid.uuid4())
    except (OSError, NotImplementedError) as e:
        logger.warning(f"uuid4 unavailable ({e}); using degraded id generator")
        return _fallback_id()


class Note(BaseModel):
    """A stored note: an opaque rich-text JSON document plus timestamps."""

    id: str = Field(default_factory=generate_id, description="Unique ID of the note")
    content: str = Field(
        default=EMPTY_DOCUMENT, description="Serialized rich-text document (JSON)"
    )
    created_at: int = Field(
        default_factory=now_ms, description="Creation time, ms since epoch"
    )
    updated_at: int = Field(
        default_factory=now_ms, description="Last content update, ms since epoch"
    )

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate that the ID is not blank."""
        if not v or not v.strip():
            raise ValueError("Note ID cannot be empty")
        return v

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        """Substitute the empty document for blank content."""
        return v if v else EMPTY_DOCUMENT

    @model_validator(mode="after")
    def _check_timestamps(self) -> "Note":
        if self.created_at > self.updated_at:
            raise ValueError("created_at cannot be later than updated_at")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class NotePreview(BaseModel):
    """Read-only projection of a note for list views.

    Not persisted; recomputed from the stored content on every listing.
    """

    id: str
    preview: str
    created_at: int
    updated_at: int

    model_config = {"frozen": True}
