"""Local handling of formatting requests with an external formatter.

Formatting requests never reach the language server. The document text is
copied to a temporary file, the formatter rewrites that copy in place, and
the result is sent back as a single edit replacing the whole document.
"""

import logging
import os
import re
import shutil
import subprocess
import tempfile
from typing import Any, Callable, Dict, Optional

from pyrightbridge.protocol.messages import (
    FORMATTER_UNAVAILABLE,
    FORMATTING_FAILED,
    INVALID_PARAMS,
    RANGE_FORMATTING,
    Message,
    Position,
    Range,
    TextEdit,
    document_uri,
    edits_to_result,
    get_params,
    make_error,
    make_response,
)
from pyrightbridge.utils.workspace import Workspace

Reply = Callable[[Message], None]

TEMP_PREFIX = "ruff-format-"
TEMP_FILENAME = "temp.py"

# Line terminators recognized by the protocol
LINE_BREAK = re.compile(r"\r\n|\r|\n")
TRAILING_LINE_BREAK = re.compile(r"(?:\r\n|\r|\n)\Z")


def _utf16_length(text: str) -> int:
    return len(text.encode("utf-16-le")) // 2


def _end_of(text: str) -> Position:
    """Position just past the last character of `text`, in UTF-16 code units."""
    breaks = list(LINE_BREAK.finditer(text))
    last_line = text[breaks[-1].end():] if breaks else text
    return Position(line=len(breaks), character=_utf16_length(last_line))


def compute_full_document_edit(original: str, formatted: str) -> TextEdit:
    """Build an edit that replaces `original` with `formatted`.

    The range ends on the last content line of `original`. When `original`
    ends with a line break (`\\n`, `\\r\\n` or `\\r`), that line break is left
    outside the range, so the matching trailing line break is dropped from
    the new text. Columns count UTF-16 code units.

    Args:
        original: The document text before formatting.
        formatted: The formatter's output.

    Returns:
        The whole-document edit.
    """
    match = TRAILING_LINE_BREAK.search(original)
    terminator = match.group() if match else ""

    new_text = formatted
    if not terminator:
        end = _end_of(original)
    elif formatted.endswith(terminator):
        end = _end_of(original[:-len(terminator)])
        new_text = formatted[:-len(terminator)]
    else:
        # The trailing line break has to go as well
        end = _end_of(original)

    return TextEdit(
        range=Range(start=Position(line=0, character=0), end=end),
        newText=new_text
    )


class FormattingHandler:
    """Answers formatting requests by running the formatter on a temporary copy."""

    def __init__(self, formatter_path: str, timeout: Optional[float] = 30.0):
        """Initialize the formatting handler.

        Args:
            formatter_path: Path to the formatter executable.
            timeout: Seconds to wait for the formatter before giving up.
        """
        self.formatter_path = formatter_path
        self.timeout = timeout
        self.logger = logging.getLogger("pyrightbridge.formatting")

    def is_available(self) -> bool:
        """Check that the formatter is an existing executable file."""
        return os.path.isfile(self.formatter_path) and os.access(self.formatter_path, os.X_OK)

    def handle(self, message: Message, reply: Reply) -> None:
        """Format the document targeted by a formatting request.

        Exactly one response or error is sent through `reply`.

        Args:
            message: The formatting request, with its URI already normalized.
            reply: Callable sending a message back to the client.
        """
        request_id = message.get("id")
        self.logger.info(f"Formatting request {request_id} intercepted, handling with {self.formatter_path}")

        try:
            reply(self._format(message))
        except (OSError, UnicodeError) as e:
            self.logger.error(f"Formatting error: {e}")
            reply(make_error(request_id, FORMATTING_FAILED, f"Formatting failed: {e}"))

    def _format(self, message: Message) -> Message:
        request_id = message.get("id")
        uri = document_uri(message)

        if not uri:
            self.logger.error("No URI in formatting request")
            return make_error(request_id, INVALID_PARAMS, "Invalid params: missing textDocument.uri")

        if not self.is_available():
            self.logger.error(f"Formatter binary not found at: {self.formatter_path}")
            return make_error(request_id, FORMATTER_UNAVAILABLE, "Formatter binary not available")

        file_path = Workspace.uri_to_path(uri)
        if file_path is None:
            self.logger.error(f"Failed to convert URI to path: {uri!r}")
            return make_error(request_id, INVALID_PARAMS, "Invalid file URI")

        if message.get("method") == RANGE_FORMATTING:
            self.logger.warning(
                "Range formatting is not supported, falling back to full document formatting"
            )

        original = self._read_document(message, file_path)

        temp_dir = tempfile.mkdtemp(prefix=TEMP_PREFIX)
        try:
            temp_file = os.path.join(temp_dir, TEMP_FILENAME)
            with open(temp_file, "w", encoding="utf-8", newline="") as f:
                f.write(original)

            error = self._run_formatter(temp_file, temp_dir)
            if error is not None:
                return make_error(request_id, FORMATTING_FAILED, f"Formatting failed: {error}", data=error)

            with open(temp_file, encoding="utf-8", newline="") as f:
                formatted = f.read()
        finally:
            self._cleanup(temp_dir)

        edit = compute_full_document_edit(original, formatted)
        self.logger.info(
            f"Formatting completed: range ({edit.range.start.line},{edit.range.start.character}) -> "
            f"({edit.range.end.line},{edit.range.end.character}), {len(formatted)} chars"
        )
        return make_response(request_id, edits_to_result([edit]))

    def _read_document(self, message: Message, file_path: str) -> str:
        if os.path.isfile(file_path):
            with open(file_path, encoding="utf-8", newline="") as f:
                content = f.read()
            self.logger.debug(f"Read {len(content)} chars from disk: {file_path}")
            return content

        self.logger.warning(f"File not found on disk: {file_path}, using request text or empty content")
        text_document: Dict[str, Any] = get_params(message).get("textDocument") or {}
        text = text_document.get("text")
        return text if isinstance(text, str) else ""

    def _run_formatter(self, temp_file: str, temp_dir: str) -> Optional[str]:
        """Run the formatter on the temporary file.

        Returns:
            None on success, otherwise the error output.
        """
        try:
            process = subprocess.run(
                [self.formatter_path, "format", temp_file],
                cwd=temp_dir,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False  # Exit status is checked below
            )
        except subprocess.TimeoutExpired:
            self.logger.error(f"Formatter timed out after {self.timeout}s")
            return f"Formatter timed out after {self.timeout}s"

        self.logger.debug(f"Formatter exited with code {process.returncode}")
        if process.returncode != 0:
            stderr = process.stderr.strip()
            self.logger.error(f"Formatter error (code {process.returncode}): {stderr}")
            return stderr or f"Formatter exited with code {process.returncode}"

        return None

    def _cleanup(self, temp_dir: str) -> None:
        try:
            shutil.rmtree(temp_dir)
        except OSError as e:
            self.logger.warning(f"Failed to clean up temp directory {temp_dir}: {e}")
