"""Base session pairing one client connection with one language server process."""

import abc
import logging
import subprocess
import threading
from typing import List, Optional

from pyrightbridge.config import BridgeConfig
from pyrightbridge.exceptions import ChannelClosed, FramingError, SpawnError
from pyrightbridge.interceptor import RequestInterceptor
from pyrightbridge.protocol.framing import read_message, write_message
from pyrightbridge.protocol.messages import Message, summarize
from pyrightbridge.protocol.websocket import CLOSE_INTERNAL_ERROR, CLOSE_NORMAL, WebSocketChannel


class BaseBridgeSession(abc.ABC):
    """Abstract base class for bridge sessions.

    A session owns the server process and two relay loops. The outbound loop
    runs on the thread that calls `run` and pumps client messages through the
    interceptor into the server's stdin. The inbound loop runs on a reader
    thread and pumps the server's stdout back to the client. Whichever loop
    ends first tears the whole session down.
    """

    def __init__(self, config: BridgeConfig, channel: WebSocketChannel, interceptor: RequestInterceptor):
        """Initialize the session.

        Args:
            config: Bridge configuration.
            channel: The client connection.
            interceptor: Interceptor applied to client messages.
        """
        self.config = config
        self.channel = channel
        self.interceptor = interceptor
        self.logger = logging.getLogger("pyrightbridge.session")
        self.stderr_logger = logging.getLogger("pyrightbridge.backend")
        self.server_process: Optional[subprocess.Popen] = None

        self.reader_thread: Optional[threading.Thread] = None
        self.stderr_thread: Optional[threading.Thread] = None
        self._teardown_lock = threading.Lock()
        self._torn_down = False

    @property
    @abc.abstractmethod
    def server_command(self) -> List[str]:
        """Get the command used to launch the language server.

        Returns:
            The command and its arguments.
        """
        pass

    @property
    def closed(self) -> bool:
        return self._torn_down

    def is_running(self) -> bool:
        """Check if the language server process is running.

        Returns:
            True if the server is running, False otherwise.
        """
        return self.server_process is not None and self.server_process.poll() is None

    def start(self) -> None:
        """Spawn the language server in the execution root.

        Raises:
            SpawnError: If the server executable is missing or cannot be launched.
        """
        command = self.server_command
        self.logger.info(f"Spawning language server with cwd {self.config.execution_root}: {' '.join(command)}")

        try:
            self.server_process = subprocess.Popen(
                command,
                cwd=self.config.execution_root,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=0
            )
        except OSError as e:
            self.logger.error(f"Failed to start language server: {e}")
            raise SpawnError(f"Failed to start {command[0]}: {e}") from e

        self.logger.info(f"Language server started with pid {self.server_process.pid}")

    def run(self) -> None:
        """Relay messages until either side goes away, then tear down.

        Blocks the calling thread, which runs the outbound loop.
        """
        if self.server_process is None:
            self.start()

        self.reader_thread = threading.Thread(
            target=self._inbound_loop,
            daemon=True,
            name=f"session-{self.channel.id}-reader"
        )
        self.stderr_thread = threading.Thread(
            target=self._stderr_loop,
            daemon=True,
            name=f"session-{self.channel.id}-stderr"
        )
        self.reader_thread.start()
        self.stderr_thread.start()

        reason = "Session closed"
        try:
            reason = self._outbound_loop()
        finally:
            self.teardown(reason)

    def teardown(self, reason: str = "", code: int = CLOSE_NORMAL) -> bool:
        """Stop the language server and close the client connection.

        Safe to call from either relay loop or from outside; only the first
        call has an effect.

        Args:
            reason: Why the session is ending, for logs and the close frame.
            code: WebSocket close code sent to the client.

        Returns:
            True if this call tore the session down, False if it already was.
        """
        with self._teardown_lock:
            if self._torn_down:
                return False
            self._torn_down = True

        self.logger.info(f"Tearing down session {self.channel.id}: {reason}")
        self._stop_server()
        self.channel.close(code, reason)

        current = threading.current_thread()
        for thread in (self.reader_thread, self.stderr_thread):
            if thread is not None and thread is not current and thread.is_alive():
                thread.join(timeout=self.config.shutdown_timeout)

        return True

    def _stop_server(self) -> None:
        process = self.server_process
        if process is None:
            return

        if process.stdin:
            try:
                process.stdin.close()
            except OSError as e:
                self.logger.debug(f"Error closing language server stdin: {e}")

        if process.poll() is None:
            self.logger.info(f"Stopping language server (pid {process.pid})")
            try:
                process.terminate()
                process.wait(timeout=self.config.shutdown_timeout)
            except subprocess.TimeoutExpired:
                self.logger.warning("Language server did not terminate, forcing kill")
                process.kill()
                process.wait()
        else:
            self.logger.info(f"Language server already exited with code {process.returncode}")

    def _reply(self, message: Message) -> None:
        self.logger.debug(f"← Bridge to client: {summarize(message)}")
        self.channel.send(message)

    def _outbound_loop(self) -> str:
        """Pump client messages to the language server.

        Returns:
            Why the loop ended.
        """
        while not self._torn_down:
            try:
                message = self.channel.receive()
            except FramingError as e:
                self.logger.error(f"Malformed message from client: {e}")
                return f"Malformed client message: {e}"

            if message is None:
                self.logger.info("Client disconnected")
                return "Client disconnected"

            self.logger.debug(f"→ Client to server: {summarize(message)}")

            try:
                forward = self.interceptor.process(message, self._reply)
            except ChannelClosed:
                return "Client disconnected"

            if forward is None:
                continue

            try:
                write_message(self.server_process.stdin, forward)
            except (OSError, ValueError) as e:
                self.logger.error(f"Error writing to language server: {e}")
                return f"Language server input closed: {e}"

        return "Session closed"

    def _inbound_loop(self) -> None:
        """Pump language server messages to the client."""
        reason = "Language server exited"
        code = CLOSE_INTERNAL_ERROR

        try:
            while not self._torn_down:
                message = read_message(self.server_process.stdout)
                if message is None:
                    break

                self.logger.debug(f"← Server to client: {summarize(message)}")
                self.channel.send(message)
        except FramingError as e:
            self.logger.error(f"Malformed message from language server: {e}")
            reason = f"Malformed server message: {e}"
        except ChannelClosed:
            reason = "Client disconnected"
            code = CLOSE_NORMAL
        except (OSError, ValueError) as e:
            self.logger.error(f"Error reading from language server: {e}")
            reason = f"Language server output closed: {e}"
        finally:
            self.teardown(reason, code)

    def _stderr_loop(self) -> None:
        """Log the language server's stderr output."""
        stream = self.server_process.stderr
        try:
            for line in iter(stream.readline, b""):
                text = line.decode("utf-8", errors="replace").rstrip()
                if text:
                    self.stderr_logger.warning(f"Language server stderr: {text}")
        except (OSError, ValueError) as e:
            self.logger.debug(f"Stopped reading language server stderr: {e}")
