"""Client side of the relay: one JSON-RPC message per WebSocket frame."""

import json
import logging
import threading
from typing import Any, Dict, Optional

from websockets.exceptions import ConnectionClosed
from websockets.sync.server import ServerConnection

from pyrightbridge.exceptions import ChannelClosed
from pyrightbridge.protocol.framing import decode_content

# Normal closure and internal error, as defined by RFC 6455
CLOSE_NORMAL = 1000
CLOSE_INTERNAL_ERROR = 1011

# Longest close reason a close frame can carry, in UTF-8 bytes
MAX_REASON_BYTES = 123


def truncate_reason(reason: str) -> str:
    """Cut a close reason down to what fits in a close frame."""
    encoded = reason.encode("utf-8")[:MAX_REASON_BYTES]
    # A multi-byte character split at the limit is dropped
    return encoded.decode("utf-8", errors="ignore")


class WebSocketChannel:
    """Duplex JSON-RPC channel over a synchronous WebSocket connection.

    `receive` is only called from the session's outbound loop, while `send`
    may be called from both relay loops.
    """

    def __init__(self, connection: ServerConnection):
        """Wrap a server-side WebSocket connection.

        Args:
            connection: The accepted connection.
        """
        self.connection = connection
        self.logger = logging.getLogger("pyrightbridge.channel")
        self._close_lock = threading.Lock()
        self._closed = False

    @property
    def id(self) -> str:
        return str(self.connection.id)

    def receive(self) -> Optional[Dict[str, Any]]:
        """Receive the next message from the client.

        Returns:
            The decoded message, or None once the connection is closed.

        Raises:
            FramingError: If the frame is not a JSON object.
        """
        try:
            data = self.connection.recv()
        except ConnectionClosed:
            return None

        return decode_content(data)

    def send(self, message: Dict[str, Any]) -> None:
        """Send a message to the client.

        Args:
            message: The message to send.

        Raises:
            ChannelClosed: If the connection is already closed.
        """
        if self._closed:
            raise ChannelClosed("Connection is closed")

        try:
            self.connection.send(json.dumps(message, ensure_ascii=False))
        except ConnectionClosed as e:
            raise ChannelClosed(str(e)) from e

    def close(self, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        """Close the connection. Calling this more than once has no effect."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        self.logger.debug(f"Closing connection {self.id} (code {code}): {reason}")
        self.connection.close(code, truncate_reason(reason))
