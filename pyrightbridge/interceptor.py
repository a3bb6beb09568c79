"""Rewrites client requests before they reach the language server."""

import logging
from typing import Any, Dict, Optional

from pyrightbridge.formatting import FormattingHandler, Reply
from pyrightbridge.protocol.messages import Message, MessageKind, classify, document_uri, get_params
from pyrightbridge.utils.workspace import Workspace


class RequestInterceptor:
    """Applies the bridge's rewrites to client-to-server messages.

    Rewrites are applied in order: workspace root injection for `initialize`,
    then document URI normalization, then diversion of formatting requests
    to the local formatter. The client's message is never mutated; rewritten
    messages are shallow copies along the modified path.
    """

    def __init__(self, workspace: Workspace, formatter: Optional[FormattingHandler] = None):
        """Initialize the interceptor.

        Args:
            workspace: Workspace of the session the interceptor belongs to.
            formatter: Handler for formatting requests. Without one, formatting
                requests are forwarded to the server.
        """
        self.workspace = workspace
        self.formatter = formatter
        self.logger = logging.getLogger("pyrightbridge.interceptor")

    def process(self, message: Message, reply: Reply) -> Optional[Message]:
        """Process one client message.

        Args:
            message: The message received from the client.
            reply: Callable sending a message back to the client, used for
                diverted requests.

        Returns:
            The message to forward to the server, or None if it was handled locally.
        """
        kind = classify(message)

        if kind is MessageKind.INITIALIZE:
            message = self.inject_root(message)

        message = self.normalize_location(message)

        if kind in (MessageKind.FORMATTING, MessageKind.RANGE_FORMATTING) and self.formatter is not None:
            self.formatter.handle(message, reply)
            return None

        return message

    def inject_root(self, message: Message) -> Message:
        """Pin the workspace of an `initialize` request to the execution root.

        Args:
            message: The initialize request.

        Returns:
            A copy of the request with `rootUri` and `workspaceFolders` replaced.
        """
        root_uri = self.workspace.root_uri
        self.logger.info(f"Injecting workspace root into initialize request: {root_uri}")

        params: Dict[str, Any] = dict(get_params(message))
        params["rootUri"] = root_uri
        params["workspaceFolders"] = [
            {
                "uri": root_uri,
                "name": self.workspace.workspace_name
            }
        ]

        message = dict(message)
        message["params"] = params
        return message

    def normalize_location(self, message: Message) -> Message:
        """Normalize the `textDocument.uri` of a message, if it has one.

        Args:
            message: The message to normalize.

        Returns:
            The message, or a copy with the rewritten URI.
        """
        uri = document_uri(message)
        if uri is None:
            return message

        normalized = self.workspace.normalize_uri(uri)
        if normalized == uri:
            return message

        self.logger.debug(f"Normalized document URI {uri!r} -> {normalized}")

        params = dict(message["params"])
        params["textDocument"] = dict(params["textDocument"], uri=normalized)

        message = dict(message)
        message["params"] = params
        return message
