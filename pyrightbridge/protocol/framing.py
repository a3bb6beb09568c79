"""Content-Length framing used on the language server's standard streams."""

import json
from typing import Any, BinaryIO, Dict, Optional

from pyrightbridge.exceptions import FramingError

HEADER_ENCODING = "ascii"
CONTENT_ENCODING = "utf-8"
CONTENT_LENGTH = "content-length"


def encode_message(message: Dict[str, Any]) -> bytes:
    """Encode a JSON-RPC message as a framed byte string.

    Args:
        message: The message to encode.

    Returns:
        The header followed by the UTF-8 JSON body.
    """
    content = json.dumps(message, ensure_ascii=False, separators=(",", ":")).encode(CONTENT_ENCODING)
    header = f"Content-Length: {len(content)}\r\n\r\n".encode(HEADER_ENCODING)
    return header + content


def write_message(stream: BinaryIO, message: Dict[str, Any]) -> None:
    """Write a framed message to a stream and flush it.

    Args:
        stream: Binary stream, typically the backend's stdin.
        message: The message to write.
    """
    stream.write(encode_message(message))
    stream.flush()


def _read_headers(stream: BinaryIO) -> Optional[Dict[str, str]]:
    headers: Dict[str, str] = {}
    first = True

    while True:
        line = stream.readline()
        if not line:
            if first:
                return None
            raise FramingError("Stream closed while reading headers")
        first = False

        line = line.rstrip(b"\r\n")
        if not line:
            if not headers:
                # Stray blank line between frames
                first = True
                continue
            return headers

        try:
            name, value = line.decode(HEADER_ENCODING).split(":", 1)
        except (UnicodeDecodeError, ValueError) as e:
            raise FramingError(f"Malformed header line: {line!r}") from e
        headers[name.strip().lower()] = value.strip()


def read_message(stream: BinaryIO) -> Optional[Dict[str, Any]]:
    """Read one framed message from a stream.

    Args:
        stream: Binary stream, typically the backend's stdout.

    Returns:
        The decoded message, or None if the stream ended cleanly between frames.

    Raises:
        FramingError: If the frame is malformed or truncated.
    """
    headers = _read_headers(stream)
    if headers is None:
        return None

    if CONTENT_LENGTH not in headers:
        raise FramingError(f"Missing Content-Length header: {headers}")

    try:
        content_length = int(headers[CONTENT_LENGTH])
    except ValueError as e:
        raise FramingError(f"Invalid Content-Length: {headers[CONTENT_LENGTH]!r}") from e
    if content_length < 0:
        raise FramingError(f"Invalid Content-Length: {content_length}")

    content = b""
    while len(content) < content_length:
        chunk = stream.read(content_length - len(content))
        if not chunk:
            raise FramingError(
                f"Stream closed after {len(content)} of {content_length} content bytes"
            )
        content += chunk

    return decode_content(content)


def decode_content(content: Any) -> Dict[str, Any]:
    """Decode a JSON-RPC payload.

    Args:
        content: Raw bytes or text holding one JSON object.

    Returns:
        The decoded message.

    Raises:
        FramingError: If the payload is not a JSON object.
    """
    try:
        if isinstance(content, (bytes, bytearray)):
            content = content.decode(CONTENT_ENCODING)
        message = json.loads(content)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise FramingError(f"Invalid JSON payload: {e}") from e

    if not isinstance(message, dict):
        raise FramingError(f"Expected a JSON object, got {type(message).__name__}")

    return message
