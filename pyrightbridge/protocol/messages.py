"""JSON-RPC envelope helpers and LSP shapes used by the bridge.

Messages travel as plain dictionaries so that unknown fields pass through
untouched. `classify` gives the interceptor a closed set of kinds to branch
on, with `MessageKind.PASSTHROUGH` covering every method it does not know.
"""

import enum
import json
from typing import Any, Dict, List, Optional, TypeAlias

from pydantic import BaseModel

Message: TypeAlias = Dict[str, Any]

JSONRPC_VERSION = "2.0"

# JSON-RPC error codes
INVALID_PARAMS = -32602
FORMATTING_FAILED = -32000
FORMATTER_UNAVAILABLE = -32001

# LSP methods the bridge cares about
INITIALIZE = "initialize"
FORMATTING = "textDocument/formatting"
RANGE_FORMATTING = "textDocument/rangeFormatting"


class MessageKind(enum.Enum):
    """Kinds of message the interceptor distinguishes."""

    INITIALIZE = "initialize"
    FORMATTING = "formatting"
    RANGE_FORMATTING = "rangeFormatting"
    DOCUMENT = "document"
    RESPONSE = "response"
    PASSTHROUGH = "passthrough"


class Position(BaseModel):
    line: int
    character: int


class Range(BaseModel):
    start: Position
    end: Position


class TextEdit(BaseModel):
    range: Range
    newText: str


def get_params(message: Message) -> Dict[str, Any]:
    """Return the message's params when they are a mapping, else an empty dict."""
    params = message.get("params")
    return params if isinstance(params, dict) else {}


def document_uri(message: Message) -> Optional[Any]:
    """Get the `params.textDocument.uri` field of a message.

    Args:
        message: The message to inspect.

    Returns:
        The raw URI value, or None if the message has no document location.
    """
    text_document = get_params(message).get("textDocument")
    if not isinstance(text_document, dict):
        return None
    return text_document.get("uri")


def classify(message: Message) -> MessageKind:
    """Classify a message for the interceptor.

    Args:
        message: The message to classify.

    Returns:
        The message kind.
    """
    method = message.get("method")
    if method is None:
        return MessageKind.RESPONSE

    if method == INITIALIZE:
        return MessageKind.INITIALIZE
    if method == FORMATTING:
        return MessageKind.FORMATTING
    if method == RANGE_FORMATTING:
        return MessageKind.RANGE_FORMATTING
    if document_uri(message) is not None:
        return MessageKind.DOCUMENT

    return MessageKind.PASSTHROUGH


def make_response(request_id: Any, result: Any) -> Message:
    """Build a success response correlated to a request."""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "result": result
    }


def make_error(request_id: Any, code: int, message: str, data: Any = None) -> Message:
    """Build an error response correlated to a request.

    Args:
        request_id: Identifier of the request being answered.
        code: JSON-RPC error code.
        message: Human-readable error message.
        data: Optional extra information, such as a tool's error output.

    Returns:
        The error response.
    """
    error: Dict[str, Any] = {
        "code": code,
        "message": message
    }
    if data is not None:
        error["data"] = data

    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "error": error
    }


def edits_to_result(edits: List[TextEdit]) -> List[Dict[str, Any]]:
    """Convert text edits to their wire representation."""
    return [edit.model_dump() for edit in edits]


def summarize(message: Message, limit: int = 200) -> str:
    """Render a message for debug logs, truncated to `limit` characters."""
    text = json.dumps(message, ensure_ascii=False, default=str)
    if len(text) > limit:
        return text[:limit] + "..."
    return text
