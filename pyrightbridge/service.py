#!/usr/bin/env python3
"""Main service module for the Pyright WebSocket Bridge.

This module accepts WebSocket connections and gives each one its own
Pyright process. Connections share nothing but the immutable configuration.
"""

import http
import logging
from typing import Optional

from websockets.http11 import Request, Response
from websockets.sync.server import Server, ServerConnection, serve

from pyrightbridge.config import BridgeConfig
from pyrightbridge.exceptions import SpawnError
from pyrightbridge.formatting import FormattingHandler
from pyrightbridge.interceptor import RequestInterceptor
from pyrightbridge.protocol.websocket import CLOSE_INTERNAL_ERROR, WebSocketChannel
from pyrightbridge.servers.pyright_server import PyrightSession
from pyrightbridge.utils.workspace import Workspace


class BridgeServer:
    """WebSocket server relaying each connection to a dedicated Pyright process."""

    def __init__(self, config: BridgeConfig):
        """Initialize the bridge server.

        Args:
            config: Bridge configuration.
        """
        self.config = config
        self.workspace = Workspace(
            config.execution_root,
            reference_root=config.reference_root,
            workspace_name=config.workspace_name
        )
        self.logger = logging.getLogger("pyrightbridge.service")
        self.server: Optional[Server] = None

    @property
    def url(self) -> str:
        return f"ws://{self.config.host}:{self.config.port}{self.config.path}"

    def create_session(self, channel: WebSocketChannel) -> PyrightSession:
        """Build the session serving one connection.

        Args:
            channel: The client connection.

        Returns:
            A session whose server process has not been spawned yet.
        """
        formatter = None
        if self.config.formatter_path:
            formatter = FormattingHandler(self.config.formatter_path, timeout=self.config.formatter_timeout)

        interceptor = RequestInterceptor(self.workspace, formatter)
        return PyrightSession(self.config, channel, interceptor)

    def handle_connection(self, connection: ServerConnection) -> None:
        """Serve one WebSocket connection until it or its server goes away.

        Args:
            connection: The accepted connection.
        """
        channel = WebSocketChannel(connection)
        self.logger.info(f"Client {channel.id} connected from {connection.remote_address}, spawning Pyright...")

        session = self.create_session(channel)
        try:
            session.start()
        except SpawnError as e:
            self.logger.error(f"Cannot serve client {channel.id}: {e}")
            channel.close(CLOSE_INTERNAL_ERROR, "Language server unavailable")
            return

        session.run()
        self.logger.info(f"Client {channel.id} session ended")

    def _check_path(self, connection: ServerConnection, request: Request) -> Optional[Response]:
        path = request.path.split("?", 1)[0]
        if path != self.config.path:
            self.logger.warning(f"Rejected connection to unknown path: {request.path}")
            return connection.respond(http.HTTPStatus.NOT_FOUND, "Not found\n")
        return None

    def start(self) -> None:
        """Deploy the Pyright configuration and bind the listening socket."""
        if self.config.config_template:
            self.workspace.deploy_pyright_config(self.config.config_template)

        self.server = serve(
            self.handle_connection,
            self.config.host,
            self.config.port,
            process_request=self._check_path,
            max_size=self.config.max_message_size
        )
        self.logger.info(f"Pyright WS bridge running on {self.url}")
        self.logger.info(f"Execution root: {self.config.execution_root}")

    def serve_forever(self) -> None:
        """Serve connections until `shutdown` is called."""
        if self.server is None:
            self.start()
        self.server.serve_forever()

    def shutdown(self) -> None:
        """Stop accepting connections and close the open ones."""
        if self.server is not None:
            self.logger.info("Shutting down Pyright WS bridge")
            self.server.shutdown()
