"""Rich-text document formats and plain-text extraction.

Notes are stored as JSON produced by whichever editor wrote them. Two tree
shapes have been used over time:

* legacy tree documents, rooted at ``{"root": {"children": [...]}}`` where
  text leaves carry ``text`` and block nodes nest through ``children``;
* block documents, rooted at ``{"type": "doc", "content": [...]}`` where
  text leaves carry ``text`` and containers nest through ``content``.

``parse_document`` decodes a stored string into one of ``LegacyTreeDoc``,
``BlockDoc`` or ``PlainTextFallback``. Decoding is lenient: missing fields,
non-list children and non-string text degrade to empty values, so every
function in this module is total and never raises on bad content.
"""

import json
import logging
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, Field
from pydantic import ValidationError as PydanticValidationError

from calming_notes.models.schema import EMPTY_DOCUMENT, UNTITLED_NOTE

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100

# Node types that end a block of text
BLOCK_NODE_TYPES = frozenset({"paragraph", "heading"})

LEGACY_BLOCK_SEPARATOR = " "
PLAIN_TEXT_BLOCK_SEPARATOR = "\n\n"


def _is_present(value: Any) -> bool:
    """Presence test used for shape detection (empty containers count as present)."""
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)) and value == 0:
        return False
    return value != ""


def _node_type(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _node_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _node_children(value: Any) -> List[Any]:
    if not isinstance(value, list):
        return []
    return [child for child in value if isinstance(child, dict)]


NodeType = Annotated[Optional[str], BeforeValidator(_node_type)]
NodeText = Annotated[str, BeforeValidator(_node_text)]


class LegacyNode(BaseModel):
    """Node of a legacy tree document."""

    type: NodeType = None
    text: NodeText = ""
    children: Annotated[List["LegacyNode"], BeforeValidator(_node_children)] = Field(
        default_factory=list
    )

    model_config = {"extra": "ignore"}


class BlockNode(BaseModel):
    """Node of a block document."""

    type: NodeType = None
    text: NodeText = ""
    content: Annotated[List["BlockNode"], BeforeValidator(_node_children)] = Field(
        default_factory=list
    )

    model_config = {"extra": "ignore"}


class LegacyTreeDoc(BaseModel):
    kind: Literal["legacy"] = "legacy"
    root: LegacyNode


class BlockDoc(BaseModel):
    kind: Literal["block"] = "block"
    root: BlockNode


class PlainTextFallback(BaseModel):
    """Content that matches neither tree shape.

    ``is_json`` is False when the stored string was not valid JSON at all;
    ``text`` then holds the raw string.
    """

    kind: Literal["plain"] = "plain"
    text: str = ""
    is_json: bool = True


Document = Union[LegacyTreeDoc, BlockDoc, PlainTextFallback]


def _coerce_scalar(value: Any, nested: bool = False) -> str:
    """String form of a parsed JSON value that is not a document tree.

    Arrays join their elements with commas, with null elements left empty.
    Objects have no text.
    """
    if isinstance(value, str):
        return value
    if value is None:
        return "" if nested else "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, list):
        return ",".join(_coerce_scalar(item, nested=True) for item in value)
    if isinstance(value, dict):
        return ""
    return json.dumps(value)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-finite number {name} is not valid JSON")


def parse_document(content: Any) -> Document:
    """Decode stored content into one of the known document shapes.

    Never raises: unparseable input becomes a ``PlainTextFallback`` with
    ``is_json=False``.
    """
    if not isinstance(content, str):
        return PlainTextFallback(text="", is_json=False)
    try:
        data = json.loads(content, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return PlainTextFallback(text=content, is_json=False)

    try:
        if isinstance(data, dict):
            root = data.get("root")
            if isinstance(root, dict) and _is_present(root.get("children")):
                return LegacyTreeDoc(root=LegacyNode.model_validate(root))
            if _is_present(data.get("type")) and _is_present(data.get("content")):
                return BlockDoc(root=BlockNode.model_validate(data))
    except (PydanticValidationError, RecursionError) as e:
        logger.debug(f"Document tree could not be decoded, treating as plain: {e}")
        return PlainTextFallback(text="")

    try:
        return PlainTextFallback(text=_coerce_scalar(data))
    except RecursionError:
        logger.debug("Array nesting too deep to coerce, treating as empty")
        return PlainTextFallback(text="")


def _legacy_text(node: LegacyNode, separator: str) -> str:
    if node.type == "text":
        return node.text
    text = "".join(_legacy_text(child, separator) for child in node.children)
    if node.type in BLOCK_NODE_TYPES:
        text += separator
    return text


def _block_text(node: BlockNode, separator: str) -> str:
    if node.type == "text":
        return node.text
    text = "".join(_block_text(child, separator) for child in node.content)
    if separator and node.type in BLOCK_NODE_TYPES:
        text += separator
    return text


def extract_text(document: Document, block_separator: Optional[str] = None) -> str:
    """Concatenate the text leaves of a decoded document.

    Args:
        document: Result of ``parse_document``.
        block_separator: Appended after every paragraph/heading. Defaults to
            a single space for legacy trees and nothing for block documents.

    Returns:
        The untrimmed extracted text.
    """
    try:
        if isinstance(document, LegacyTreeDoc):
            sep = LEGACY_BLOCK_SEPARATOR if block_separator is None else block_separator
            return _legacy_text(document.root, sep)
        if isinstance(document, BlockDoc):
            return _block_text(document.root, block_separator or "")
    except RecursionError:
        logger.warning("Document nesting too deep to extract text")
        return ""
    return document.text


def extract_preview(content: Any, length: int = PREVIEW_LENGTH) -> str:
    """Derive the list-view preview for stored content.

    First ``length`` characters of the extracted text, trimmed. Invalid JSON
    and empty results map to ``"Untitled Note"``.
    """
    document = parse_document(content)
    if isinstance(document, PlainTextFallback) and not document.is_json:
        return UNTITLED_NOTE
    preview = extract_text(document)[:length].strip()
    return preview or UNTITLED_NOTE


def to_plain_text(content: Any) -> str:
    """Render stored content for a plain-text editor.

    Blocks are separated by blank lines. Content that is not JSON is
    returned unchanged.
    """
    if not content:
        return ""
    document = parse_document(content)
    if isinstance(document, PlainTextFallback):
        return document.text if document.is_json else str(content)
    return extract_text(document, PLAIN_TEXT_BLOCK_SEPARATOR).rstrip("\n")


def plain_text_to_document(text: str) -> str:
    """Wrap plain text in a single-paragraph block document."""
    if not text:
        return EMPTY_DOCUMENT
    return json.dumps(
        {
            "type": "doc",
            "content": [
                {"type": "paragraph", "content": [{"type": "text", "text": text}]}
            ],
        },
        separators=(",", ":"),
        ensure_ascii=False,
    )
